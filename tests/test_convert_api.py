"""
Tests for the /api/convert endpoints. Office documents and video go through
fake engines so the suite does not need LibreOffice or ffmpeg installed.
"""
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook
from pypdf import PdfReader

from transform_factory.api.deps import get_office_converter, get_video_transcoder
from transform_factory.services.media_service import VideoTranscoder
from transform_factory.services.office_service import OfficeConverter


class FakeOffice(OfficeConverter):
    def __init__(self, result: bytes):
        self.result = result
        self.calls = []

    def to_pdf(self, content, source_ext, options=None):
        self.calls.append((content, source_ext, options))
        return self.result


class FakeTranscoder(VideoTranscoder):
    def __init__(self):
        self.calls = []

    def transcode(self, content, source_ext, target):
        self.calls.append((content, source_ext, target))
        return b"video:" + target.encode()


@pytest.fixture
def office(app, make_pdf):
    fake = FakeOffice(make_pdf(4))
    app.dependency_overrides[get_office_converter] = lambda: fake
    return fake


@pytest.fixture
def transcoder(app):
    fake = FakeTranscoder()
    app.dependency_overrides[get_video_transcoder] = lambda: fake
    return fake


class TestImageConversion:
    def test_png_to_jpg(self, client, png_bytes):
        response = client.post(
            "/api/convert/image",
            files={"file": ("photo.png", png_bytes, "image/png")},
            data={"outputFormat": "jpg"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["content-disposition"] == 'attachment; filename="converted.jpg"'
        assert response.content[:2] == b"\xff\xd8"

    def test_bmp_output_is_real_bmp(self, client, png_bytes):
        response = client.post(
            "/api/convert/image",
            files={"file": ("photo.png", png_bytes, "image/png")},
            data={"outputFormat": "bmp"},
        )
        assert response.content[:2] == b"BM"

    def test_output_format_is_required(self, client, png_bytes):
        response = client.post("/api/convert/image", files={"file": ("photo.png", png_bytes, "image/png")})
        assert response.status_code == 400
        assert response.json() == {"error": "File and output format are required"}

    def test_unsupported_output(self, client, png_bytes):
        response = client.post(
            "/api/convert/image",
            files={"file": ("photo.png", png_bytes, "image/png")},
            data={"outputFormat": "tiff"},
        )
        assert response.status_code == 400

    def test_no_cache_and_security_headers(self, client, png_bytes):
        response = client.post(
            "/api/convert/image",
            files={"file": ("photo.png", png_bytes, "image/png")},
            data={"outputFormat": "png"},
        )
        assert response.headers["cache-control"] == "no-store, max-age=0"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"


class TestVideoConversion:
    def test_uses_transcoder(self, client, transcoder):
        response = client.post(
            "/api/convert/video",
            files={"file": ("clip.mov", b"movdata", "video/quicktime")},
            data={"outputFormat": "webm"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "video/webm"
        assert response.headers["content-disposition"] == 'attachment; filename="converted.webm"'
        assert transcoder.calls == [(b"movdata", ".mov", "webm")]

    def test_unknown_container(self, client, transcoder):
        response = client.post(
            "/api/convert/video",
            files={"file": ("clip.mov", b"movdata", "video/quicktime")},
            data={"outputFormat": "flv"},
        )
        assert response.status_code == 400
        assert transcoder.calls == []


class TestDocumentConversion:
    def test_csv_to_xlsx(self, client):
        response = client.post(
            "/api/convert/document",
            files={"file": ("table.csv", b"name,qty\napple,3\npear,5\n", "text/csv")},
            data={"outputFormat": "xlsx"},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="converted.xlsx"'
        sheet = load_workbook(BytesIO(response.content)).active
        assert [c.value for c in sheet[1]] == ["name", "qty"]
        assert sheet["B3"].value == 5

    def test_docx_to_pdf_uses_office_engine(self, client, office):
        response = client.post(
            "/api/convert/document",
            files={"file": ("memo.docx", b"docx-bytes", "application/octet-stream")},
            data={"outputFormat": "pdf"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert office.calls[0][:2] == (b"docx-bytes", "docx")

    def test_unsupported_pair(self, client):
        response = client.post(
            "/api/convert/document",
            files={"file": ("photo.png", b"png", "image/png")},
            data={"outputFormat": "pdf"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Conversion from png to pdf is not supported"}


class TestOfficeToPdf:
    def test_word_to_pdf(self, client, office):
        response = client.post(
            "/api/convert/document/word-to-pdf",
            files={"document": ("memo.docx", b"docx-bytes", "application/octet-stream")},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="memo.pdf"'
        assert office.calls == [(b"docx-bytes", ".docx", {"Quality": 90})]

    def test_word_to_pdf_rejects_other_files(self, client, office):
        response = client.post(
            "/api/convert/document/word-to-pdf",
            files={"document": ("memo.pdf", b"%PDF", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid file format. Please upload a Word document (.doc, .docx)"
        }

    def test_excel_to_pdf_rejects_text_files(self, client, office):
        response = client.post(
            "/api/convert/document/excel-to-pdf",
            files={"spreadsheet": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid file format. Please upload an Excel spreadsheet (.xls, .xlsx, .csv)"
        }
        assert office.calls == []

    def test_excel_print_options_are_applied(self, client, office):
        workbook = Workbook()
        workbook.active["A1"] = "total"
        buffer = BytesIO()
        workbook.save(buffer)

        response = client.post(
            "/api/convert/document/excel-to-pdf",
            files={"spreadsheet": ("budget.xlsx", buffer.getvalue(), "application/octet-stream")},
            data={"includeGridlines": "true", "fitToPage": "true", "quality": "low"},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="budget.pdf"'
        content, ext, options = office.calls[0]
        assert ext == ".xlsx"
        assert options == {"Quality": 50}
        sheet = load_workbook(BytesIO(content)).active
        assert sheet.print_options.gridLines is True
        assert sheet.page_setup.fitToWidth == 1

    def test_powerpoint_page_range(self, client, office):
        response = client.post(
            "/api/convert/document/powerpoint-to-pdf",
            files={"presentation": ("deck.pptx", b"pptx-bytes", "application/octet-stream")},
            data={"pageRange": "2-3", "includeNotes": "true"},
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="deck.pdf"'
        assert len(PdfReader(BytesIO(response.content)).pages) == 2
        assert office.calls[0][2] == {"Quality": 90, "ExportNotesPages": True}

    def test_html_content_to_pdf(self, client, office):
        response = client.post(
            "/api/convert/document/html-to-pdf",
            data={
                "htmlContent": '<html><head><style>p {color: red}</style></head><body><p>Hi</p></body></html>',
                "includeStyles": "false",
                "pageSize": "letter",
                "margins": "narrow",
            },
        )
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="converted.pdf"'
        content, ext, _ = office.calls[0]
        html = content.decode("utf-8")
        assert ext == "html"
        assert "@page { size: 612pt 792pt; margin: 25pt; }" in html
        assert "color: red" not in html
        assert "<p>Hi</p>" in html

    def test_html_file_to_pdf(self, client, office):
        response = client.post(
            "/api/convert/document/html-to-pdf",
            files={"htmlFile": ("page.html", b"<h1>Title</h1>", "text/html")},
        )
        assert response.status_code == 200
        assert "<h1>Title</h1>" in office.calls[0][0].decode("utf-8")

    def test_html_requires_input(self, client, office):
        response = client.post("/api/convert/document/html-to-pdf", data={"pageSize": "a4"})
        assert response.status_code == 400
        assert response.json() == {"error": "Either an HTML file or HTML content is required"}


class TestApp:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route_uses_error_shape(self, client):
        response = client.post("/api/pdf/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}
