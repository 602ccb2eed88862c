"""Page and batch schemas for the explainer pipeline."""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$', re.DOTALL)


class Page(BaseModel):
    """
    Single manga page image supplied by the ingestion collaborator.

    Pages are immutable once produced; the orchestrator only reads them.
    """

    image: bytes = Field(..., description="Encoded image payload (PNG, JPEG, ...)")
    mime_type: str = Field(default="image/png", description="MIME type of the encoded image")
    label: str = Field(default="", description="Human-readable page label")

    @field_validator('image')
    @classmethod
    def validate_image(cls, v: bytes) -> bytes:
        """Ensure the image payload is not empty."""
        if not v:
            raise ValueError("image payload cannot be empty")
        return v

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only image MIME types can be sent to the vision model."""
        if not v.startswith('image/'):
            raise ValueError(f"mime_type must be an image type, got '{v}'")
        return v

    @classmethod
    def from_data_url(cls, data_url: str, label: str = "") -> "Page":
        """Build a page from a ``data:<mime>;base64,<payload>`` URL."""
        match = DATA_URL_PATTERN.match(data_url.strip())
        if not match:
            raise ValueError("Not a base64 data URL")
        try:
            image = base64.b64decode(match.group('data'), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
        return cls(image=image, mime_type=match.group('mime'), label=label)

    def to_data_url(self) -> str:
        """Encode the page as a data URL."""
        encoded = base64.b64encode(self.image).decode('ascii')
        return f"data:{self.mime_type};base64,{encoded}"

    def to_base64(self) -> str:
        return base64.b64encode(self.image).decode('ascii')

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class Batch:
    """Contiguous slice of the global page sequence sent in one request.

    Attributes:
        index: Position of the batch within the run (0-based)
        start_index: Global index of the first page in the batch
        pages: Pages covered by the batch, in order
    """
    index: int
    start_index: int
    pages: Tuple[Page, ...]

    @property
    def length(self) -> int:
        return len(self.pages)

    @property
    def end_index(self) -> int:
        """Global index one past the last page of the batch."""
        return self.start_index + len(self.pages)
