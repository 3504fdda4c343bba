from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from transform_factory.main import create_app


def build_pdf(pages: int = 3, label: str = "Page") -> bytes:
    """A4 document whose page N reads ``"<label> N"``."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    for number in range(1, pages + 1):
        c.setFont("Helvetica", 24)
        c.drawString(72, 720, f"{label} {number}")
        c.showPage()
    c.save()
    return buffer.getvalue()


def build_image(fmt: str = "PNG", size=(120, 80), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def app():
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def make_image():
    return build_image


@pytest.fixture
def pdf_bytes():
    return build_pdf(5)


@pytest.fixture
def png_bytes():
    return build_image()
