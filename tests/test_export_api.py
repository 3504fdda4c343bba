"""
Tests for exporting PDFs to images, office formats, text and audio.
"""
import zipfile
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from openpyxl import load_workbook
from pptx import Presentation
from reportlab.pdfgen import canvas

from transform_factory.api.deps import get_speech_synthesizer
from transform_factory.services.speech_service import SpeechSynthesizer

PDF = "application/pdf"


def zip_names(content: bytes):
    with zipfile.ZipFile(BytesIO(content)) as archive:
        return sorted(archive.namelist())


class FakeSynthesizer(SpeechSynthesizer):
    def __init__(self):
        self.calls = []

    def synthesize(self, text, language="en", voice=None):
        self.calls.append((text, language, voice))
        return b"fake-mp3"


@pytest.fixture
def synthesizer(app):
    fake = FakeSynthesizer()
    app.dependency_overrides[get_speech_synthesizer] = lambda: fake
    return fake


class TestImages:
    def test_to_jpg(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-jpg",
            files={"pdf": ("slides.pdf", make_pdf(3), PDF)},
            data={"quality": "70", "dpi": "72"},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="slides_jpg.zip"'
        assert zip_names(response.content) == ["page_1.jpg", "page_2.jpg", "page_3.jpg"]

    def test_to_images_png_with_range(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-images",
            files={"pdf": ("slides.pdf", make_pdf(3), PDF)},
            data={"format": "png", "dpi": "72", "pageRange": "2-3"},
        )
        assert response.headers["content-disposition"] == 'attachment; filename="slides_images.zip"'
        with zipfile.ZipFile(BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["page_2.png", "page_3.png"]
            assert archive.read("page_2.png").startswith(b"\x89PNG")

    def test_names_are_padded_past_nine_pages(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-jpg",
            files={"pdf": ("long.pdf", make_pdf(10), PDF)},
            data={"dpi": "36"},
        )
        names = zip_names(response.content)
        assert names[0] == "page_01.jpg"
        assert names[-1] == "page_10.jpg"

    def test_dpi_out_of_range(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-images",
            files={"pdf": ("slides.pdf", make_pdf(1), PDF)},
            data={"dpi": "10"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "DPI must be between 36 and 600"}

    def test_unsupported_format(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-images",
            files={"pdf": ("slides.pdf", make_pdf(1), PDF)},
            data={"format": "tiff"},
        )
        assert response.status_code == 400


class TestOfficeFormats:
    @patch("transform_factory.api.endpoints.export.conversion_service")
    def test_to_word_passes_selected_pages(self, mock_service, client, make_pdf):
        mock_service.pdf_to_word.return_value = b"docx-bytes"
        response = client.post(
            "/api/pdf/to-word",
            files={"pdf": ("letter.pdf", make_pdf(4), PDF)},
            data={"pageRange": "2-3", "quality": "high"},
        )
        assert response.status_code == 200
        assert response.content == b"docx-bytes"
        assert response.headers["content-disposition"] == 'attachment; filename="letter.docx"'
        args = mock_service.pdf_to_word.call_args[0]
        assert args[1:] == ([2, 3], "high")

    def test_to_excel_sheet_per_page(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-excel",
            files={"pdf": ("data.pdf", make_pdf(2), PDF)},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="data.xlsx"'
        workbook = load_workbook(BytesIO(response.content))
        assert workbook.sheetnames == ["Page 1", "Page 2"]
        assert workbook["Page 2"]["A2"].value == "Page 2"

    def test_to_powerpoint_with_notes(self, client, make_pdf):
        response = client.post(
            "/api/pdf/to-powerpoint",
            files={"pdf": ("deck.pdf", make_pdf(3), PDF)},
            data={"pageRange": "1,3", "includeNotes": "true", "quality": "low"},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="deck.pptx"'
        slides = list(Presentation(BytesIO(response.content)).slides)
        assert len(slides) == 2
        assert slides[1].notes_slide.notes_text_frame.text == "Page 3"


class TestExtractText:
    def test_text_file(self, client, make_pdf):
        response = client.post(
            "/api/pdf/extract-text",
            files={"pdf": ("notes.pdf", make_pdf(2), PDF)},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="notes_text.txt"'
        assert response.headers["content-type"].startswith("text/plain")
        body = response.content.decode("utf-8")
        assert body.index("Page 1") < body.index("Page 2")

    def test_json(self, client, make_pdf):
        response = client.post(
            "/api/pdf/extract-text",
            files={"pdf": ("notes.pdf", make_pdf(3), PDF)},
            data={"format": "json", "pageRange": "1,3"},
        )
        assert response.status_code == 200
        data = response.json()
        assert sorted(data) == ["page_1", "page_3"]
        assert data["page_3"].strip() == "Page 3"

    def test_invalid_range(self, client, make_pdf):
        response = client.post(
            "/api/pdf/extract-text",
            files={"pdf": ("notes.pdf", make_pdf(2), PDF)},
            data={"pageRange": "3"},
        )
        assert response.status_code == 400


class TestToAudio:
    @patch("transform_factory.services.speech_service.AudioSegment")
    def test_reads_selected_pages(self, mock_audio, client, synthesizer, make_pdf):
        segment = MagicMock()
        segment.export.side_effect = lambda out, **kwargs: out.write(b"ID3-audio")
        mock_audio.from_file.return_value = segment

        response = client.post(
            "/api/pdf/to-audio",
            files={"file": ("book.pdf", make_pdf(3), PDF)},
            data={"pageRange": "2", "language": "en", "voice": "en-GB-Neural2-A", "quality": "high"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["content-disposition"] == 'attachment; filename="book.mp3"'
        assert response.content == b"ID3-audio"
        text, language, voice = synthesizer.calls[0]
        assert "Page 2" in text and "Page 1" not in text
        assert (language, voice) == ("en", "en-GB-Neural2-A")
        assert segment.export.call_args.kwargs["bitrate"] == "192k"

    def test_speed_out_of_range(self, client, synthesizer, make_pdf):
        response = client.post(
            "/api/pdf/to-audio",
            files={"file": ("book.pdf", make_pdf(1), PDF)},
            data={"speed": "3"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Speed must be between 0.5 and 2.0"}
        assert synthesizer.calls == []

    def test_document_without_text(self, client, synthesizer):
        buffer = BytesIO()
        blank = canvas.Canvas(buffer)
        blank.showPage()
        blank.save()
        response = client.post(
            "/api/pdf/to-audio",
            files={"file": ("blank.pdf", buffer.getvalue(), PDF)},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "No readable text found in the selected pages"}
