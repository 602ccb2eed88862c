"""Page Loader Agent for manga page ingestion

This module turns user-supplied files into the ordered Page sequence the
explainer consumes. PDFs are rasterized page by page with PyMuPDF; image
files are passed through unchanged. Files that are neither are skipped.
"""

import io
import logging
import os
from typing import List, Optional, Sequence

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from src.agents.base import Agent, AgentExecutionError, AgentInput, AgentOutput, RetryPolicy
from src.schemas.page import Page

logger = logging.getLogger(__name__)


class PageLoadError(AgentExecutionError):
    """Raised when no usable pages can be produced from the input files"""
    pass


class PageSourceInput(AgentInput):
    """Input for Page Loader Agent

    Attributes:
        paths: Files to load, in upload order
    """

    def __init__(self, paths: Sequence[str]):
        self.paths = [str(path) for path in paths]


class PageLoaderOutput(AgentOutput):
    """Output from Page Loader Agent

    Attributes:
        pages: Loaded pages in global order
        skipped: Paths that were not recognised as PDF or image files
    """

    def __init__(self, pages: List[Page], skipped: List[str]):
        self.pages = pages
        self.skipped = skipped


class PageLoaderAgent(Agent):
    """Agent responsible for producing the ordered page sequence

    - PDF files: every page is rendered at RENDER_SCALE and encoded as JPEG
      with label "<file> - P<n>"
    - Image files: bytes are kept as-is, MIME type taken from the detected
      format, label is the file name
    - Anything else: skipped with a warning
    """

    RENDER_SCALE = 2.5
    JPEG_QUALITY = 85
    PDF_MAGIC_BYTES = b'%PDF-'

    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Load pages from the given files

        Raises:
            PageLoadError: NO_PAGES if nothing usable was found,
                PDF_OPEN_FAILED if a PDF cannot be opened
        """
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                error_code="INVALID_INPUT",
                message="Input must be a PageSourceInput",
                context={"input_type": type(input_data).__name__}
            )

        pages: List[Page] = []
        skipped: List[str] = []

        for path in input_data.paths:
            if not os.path.isfile(path):
                raise PageLoadError(
                    error_code="FILE_NOT_FOUND",
                    message=f"File does not exist: {path}",
                    context={"file_path": path}
                )

            if self._is_pdf(path):
                pdf_pages = self.rasterize_pdf(path)
                logger.info(f"Rasterized {len(pdf_pages)} pages from {os.path.basename(path)}")
                pages.extend(pdf_pages)
                continue

            page = self.load_image(path)
            if page is None:
                logger.warning(f"Skipping unsupported file: {path}")
                skipped.append(path)
                continue
            pages.append(page)

        if not pages:
            raise PageLoadError(
                error_code="NO_PAGES",
                message="Please upload a manga PDF or some panels first.",
                context={"skipped": skipped}
            )

        return PageLoaderOutput(pages=pages, skipped=skipped)

    def _is_pdf(self, path: str) -> bool:
        with open(path, 'rb') as f:
            return f.read(len(self.PDF_MAGIC_BYTES)) == self.PDF_MAGIC_BYTES

    def rasterize_pdf(self, path: str) -> List[Page]:
        """Render every PDF page to a JPEG-encoded Page."""
        filename = os.path.basename(path)
        try:
            document = fitz.open(path)
        except (fitz.FileDataError, RuntimeError) as e:
            raise PageLoadError(
                error_code="PDF_OPEN_FAILED",
                message=f"Failed to open PDF file: {e}",
                context={"file_path": path}
            ) from e

        pages: List[Page] = []
        try:
            matrix = fitz.Matrix(self.RENDER_SCALE, self.RENDER_SCALE)
            for page_number in range(len(document)):
                pix = document[page_number].get_pixmap(matrix=matrix, alpha=False)
                img = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)

                buffered = io.BytesIO()
                img.save(buffered, format="JPEG", quality=self.JPEG_QUALITY)
                pages.append(Page(
                    image=buffered.getvalue(),
                    mime_type="image/jpeg",
                    label=f"{filename} - P{page_number + 1}"
                ))
        finally:
            document.close()

        return pages

    def load_image(self, path: str) -> Optional[Page]:
        """Read an image file, or return None if it is not an image."""
        with open(path, 'rb') as f:
            data = f.read()

        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
        except UnidentifiedImageError:
            return None

        mime_type = Image.MIME.get(image_format or "", "")
        if not mime_type.startswith("image/"):
            return None

        return Page(image=data, mime_type=mime_type, label=os.path.basename(path))

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is a PageSourceInput"""
        return isinstance(input_data, PageSourceInput)

    def get_retry_policy(self) -> RetryPolicy:
        """Loading local files is deterministic, so no retry is performed"""
        return RetryPolicy(max_attempts=1)
