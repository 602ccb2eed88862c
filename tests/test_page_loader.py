"""Unit tests for Page Loader Agent"""

import io

import fitz  # PyMuPDF
import pytest
from PIL import Image

from src.agents.base import AgentExecutionError
from src.agents.page_loader import PageLoadError, PageLoaderAgent, PageLoaderOutput, PageSourceInput


def write_pdf(path, page_count):
    document = fitz.open()
    for number in range(page_count):
        page = document.new_page(width=200, height=300)
        page.insert_text((50, 100), f"Panel {number + 1}")
    document.save(str(path))
    document.close()
    return path


def write_image(path, image_format, color="white"):
    Image.new("RGB", (16, 24), color=color).save(str(path), format=image_format)
    return path


@pytest.fixture
def agent():
    return PageLoaderAgent()


class TestPageLoaderAgent:
    """Test suite for PageLoaderAgent"""

    def test_pdf_rasterized_page_by_page(self, agent, tmp_path):
        pdf_path = write_pdf(tmp_path / "chapter1.pdf", 3)

        output = agent.execute(PageSourceInput([pdf_path]))

        assert isinstance(output, PageLoaderOutput)
        assert [page.label for page in output.pages] == [
            "chapter1.pdf - P1",
            "chapter1.pdf - P2",
            "chapter1.pdf - P3",
        ]
        assert all(page.mime_type == "image/jpeg" for page in output.pages)

    def test_pdf_rendered_at_render_scale(self, agent, tmp_path):
        pdf_path = write_pdf(tmp_path / "scaled.pdf", 1)

        page = agent.execute(PageSourceInput([pdf_path])).pages[0]

        with Image.open(io.BytesIO(page.image)) as img:
            assert img.format == "JPEG"
            assert img.size == (500, 750)

    def test_image_passed_through(self, agent, tmp_path):
        png_path = write_image(tmp_path / "panel.png", "PNG")

        page = agent.execute(PageSourceInput([png_path])).pages[0]

        assert page.mime_type == "image/png"
        assert page.label == "panel.png"
        assert page.image == png_path.read_bytes()

    def test_mixed_inputs_keep_upload_order(self, agent, tmp_path):
        first = write_image(tmp_path / "cover.jpg", "JPEG")
        pdf_path = write_pdf(tmp_path / "ch.pdf", 2)
        last = write_image(tmp_path / "back.png", "PNG")

        output = agent.execute(PageSourceInput([first, pdf_path, last]))

        assert [page.label for page in output.pages] == ["cover.jpg", "ch.pdf - P1", "ch.pdf - P2", "back.png"]
        assert output.pages[0].mime_type == "image/jpeg"

    def test_unsupported_files_skipped(self, agent, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("not a panel")
        png_path = write_image(tmp_path / "panel.png", "PNG")

        output = agent.execute(PageSourceInput([notes, png_path]))

        assert len(output.pages) == 1
        assert output.skipped == [str(notes)]

    def test_no_usable_pages(self, agent, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("not a panel")

        with pytest.raises(PageLoadError) as exc_info:
            agent.execute(PageSourceInput([notes]))

        assert exc_info.value.error_code == "NO_PAGES"
        assert exc_info.value.message == "Please upload a manga PDF or some panels first."

    def test_empty_path_list(self, agent):
        with pytest.raises(PageLoadError) as exc_info:
            agent.execute(PageSourceInput([]))

        assert exc_info.value.error_code == "NO_PAGES"

    def test_missing_file(self, agent, tmp_path):
        with pytest.raises(PageLoadError) as exc_info:
            agent.execute(PageSourceInput([tmp_path / "missing.pdf"]))

        assert exc_info.value.error_code == "FILE_NOT_FOUND"

    def test_corrupt_pdf(self, agent, tmp_path):
        broken = tmp_path / "broken.pdf"
        broken.write_bytes(b"%PDF-1.4\nthis is not really a pdf")

        with pytest.raises(PageLoadError) as exc_info:
            agent.execute(PageSourceInput([broken]))

        # MuPDF may refuse the file outright or repair it into an empty document
        assert exc_info.value.error_code in ("PDF_OPEN_FAILED", "NO_PAGES")

    def test_invalid_input_type(self, agent):
        with pytest.raises(AgentExecutionError) as exc_info:
            agent.execute(["a.pdf"])

        assert exc_info.value.error_code == "INVALID_INPUT"

    def test_no_retry(self, agent):
        assert agent.get_retry_policy().max_attempts == 1
