"""Pydantic schemas for data contracts between agents."""

from src.schemas.configuration import GenerationSettings
from src.schemas.image import AspectRatio, GeneratedImage
from src.schemas.page import Batch, Page
from src.schemas.scene import ProductionScript, Scene

__all__ = [
    # Pages
    "Page",
    "Batch",
    # Production script
    "Scene",
    "ProductionScript",
    # Image generation
    "AspectRatio",
    "GeneratedImage",
    # Settings
    "GenerationSettings",
]
