"""Pipeline orchestration components.

This package intentionally avoids importing ``src.orchestrator.pipeline`` at
module import time; the pipeline symbols below are resolved on first access.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.orchestrator.pipeline import Orchestrator, PipelineConfig, RunCancelledError

__all__ = ["Orchestrator", "PipelineConfig", "RunCancelledError"]


def __getattr__(name: str):
    """Lazily expose orchestrator symbols without eager pipeline imports."""
    if name in __all__:
        from src.orchestrator.pipeline import Orchestrator, PipelineConfig, RunCancelledError

        mapping = {
            "Orchestrator": Orchestrator,
            "PipelineConfig": PipelineConfig,
            "RunCancelledError": RunCancelledError,
        }
        return mapping[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
