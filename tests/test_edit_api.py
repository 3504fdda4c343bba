"""
Tests for the editing endpoints: watermark, page numbers, redaction,
signatures and fillable forms.
"""
import json

import fitz

PDF = "application/pdf"


def open_result(response) -> fitz.Document:
    assert response.status_code == 200, response.text
    return fitz.open(stream=response.content, filetype="pdf")


class TestWatermark:
    def test_text_is_stamped_on_every_page(self, client, make_pdf):
        response = client.post(
            "/api/pdf/watermark",
            files={"file": ("doc.pdf", make_pdf(2), PDF)},
            data={"watermarkText": "CONFIDENTIAL", "watermarkOpacity": "0.3"},
        )
        doc = open_result(response)
        assert response.headers["content-disposition"] == 'attachment; filename="watermarked.pdf"'
        assert all("CONFIDENTIAL" in page.get_text() for page in doc)

    def test_text_is_required(self, client, make_pdf):
        response = client.post("/api/pdf/watermark", files={"file": ("doc.pdf", make_pdf(1), PDF)})
        assert response.status_code == 400
        assert response.json() == {"error": "Watermark text is required"}

    def test_opacity_out_of_range(self, client, make_pdf):
        response = client.post(
            "/api/pdf/watermark",
            files={"file": ("doc.pdf", make_pdf(1), PDF)},
            data={"watermarkText": "DRAFT", "watermarkOpacity": "1.5"},
        )
        assert response.status_code == 400


class TestPageNumbers:
    def test_numbers_with_prefix_and_start(self, client, make_pdf):
        response = client.post(
            "/api/pdf/add-page-numbers",
            files={"pdf": ("doc.pdf", make_pdf(3), PDF)},
            data={"startNumber": "10", "prefix": "#", "suffix": "/x", "position": "top-right"},
        )
        doc = open_result(response)
        assert "#10/x" in doc[0].get_text()
        assert "#12/x" in doc[2].get_text()

    def test_bottom_numbers_sit_low_on_the_page(self, client, make_pdf):
        response = client.post(
            "/api/pdf/add-page-numbers",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"prefix": "No. "},
        )
        page = open_result(response)[0]
        hits = page.search_for("No. 1")
        assert hits and hits[0].y1 > page.rect.height - 40

    def test_invalid_position(self, client, make_pdf):
        response = client.post(
            "/api/pdf/add-page-numbers",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"position": "middle"},
        )
        assert response.status_code == 400


class TestRedact:
    def test_text_under_area_is_removed(self, client, make_pdf):
        areas = [{"page": 1, "x": 60, "y": 90, "width": 250, "height": 50}]
        response = client.post(
            "/api/pdf/redact",
            files={"pdf": ("doc.pdf", make_pdf(2), PDF)},
            data={"redactionAreas": json.dumps(areas), "redactionColor": "red"},
        )
        doc = open_result(response)
        assert "Page 1" not in doc[0].get_text()
        assert "Page 2" in doc[1].get_text()

    def test_areas_are_required(self, client, make_pdf):
        response = client.post(
            "/api/pdf/redact",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"redactionAreas": "[]"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "No redaction areas specified"}

    def test_area_on_missing_page(self, client, make_pdf):
        areas = [{"page": 4, "x": 0, "y": 0, "width": 10, "height": 10}]
        response = client.post(
            "/api/pdf/redact",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"redactionAreas": json.dumps(areas)},
        )
        assert response.status_code == 400

    def test_malformed_json(self, client, make_pdf):
        response = client.post(
            "/api/pdf/redact",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"redactionAreas": "{not json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON in redactionAreas"}


class TestSign:
    def test_signature_image_and_date(self, client, make_pdf, png_bytes):
        response = client.post(
            "/api/pdf/sign",
            files={
                "pdf": ("doc.pdf", make_pdf(2), PDF),
                "signature": ("sig.png", png_bytes, "image/png"),
            },
            data={"pageNumber": "2", "posX": "100", "posY": "100", "includeDate": "true"},
        )
        doc = open_result(response)
        assert response.headers["content-disposition"] == 'attachment; filename="signed.pdf"'
        assert not doc[0].get_images()
        assert len(doc[1].get_images()) == 1
        assert "Date:" in doc[1].get_text()

    def test_page_number_is_clamped(self, client, make_pdf, png_bytes):
        response = client.post(
            "/api/pdf/sign",
            files={
                "pdf": ("doc.pdf", make_pdf(2), PDF),
                "signature": ("sig.png", png_bytes, "image/png"),
            },
            data={"pageNumber": "9"},
        )
        doc = open_result(response)
        assert len(doc[1].get_images()) == 1

    def test_signature_is_required(self, client, make_pdf):
        response = client.post("/api/pdf/sign", files={"pdf": ("doc.pdf", make_pdf(1), PDF)})
        assert response.status_code == 400
        assert response.json() == {"error": "No signature image provided"}


class TestForms:
    fields = [
        {"id": "name", "type": "text", "label": "Name", "x": 50, "y": 120, "required": True},
        {"id": "agree", "type": "checkbox", "label": "I agree", "x": 50, "y": 170, "width": 15, "height": 15},
        {"id": "size", "type": "dropdown", "label": "Size", "x": 50, "y": 220, "options": ["S", "M", "L"]},
    ]

    def test_create_form_on_existing_document(self, client, make_pdf):
        response = client.post(
            "/api/pdf/create-form",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"fields": json.dumps(self.fields)},
        )
        doc = open_result(response)
        assert response.headers["content-disposition"] == 'attachment; filename="fillable.pdf"'
        names = sorted(w.field_name for w in doc[0].widgets())
        assert names == ["agree", "name", "size"]

    def test_dropdown_needs_options(self, client, make_pdf):
        fields = [{"type": "dropdown", "label": "Pick", "x": 10, "y": 10}]
        response = client.post(
            "/api/pdf/create-form",
            files={"pdf": ("doc.pdf", make_pdf(1), PDF)},
            data={"fields": json.dumps(fields)},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid fields")

    def test_fields_are_required(self, client, make_pdf):
        response = client.post("/api/pdf/create-form", files={"pdf": ("doc.pdf", make_pdf(1), PDF)})
        assert response.status_code == 400
        assert response.json() == {"error": "No form fields provided"}

    def test_form_creator_on_blank_page(self, client):
        response = client.post(
            "/api/pdf/form-creator",
            data={
                "formFields": json.dumps(self.fields),
                "pageSize": "letter",
                "orientation": "landscape",
                "title": "Registration",
            },
        )
        doc = open_result(response)
        assert response.headers["content-disposition"] == 'attachment; filename="form.pdf"'
        assert doc[0].rect.width == 792
        assert "Registration" in doc[0].get_text()
        assert len(list(doc[0].widgets())) == 3

    def test_form_creator_on_base_document(self, client, make_pdf):
        response = client.post(
            "/api/pdf/form-creator",
            files={"baseFile": ("base.pdf", make_pdf(2), PDF)},
            data={"formFields": json.dumps(self.fields[:1])},
        )
        doc = open_result(response)
        assert doc.page_count == 2
        assert "Page 1" in doc[0].get_text()
