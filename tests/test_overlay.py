"""
Tests for the field overlay engine.
"""
import pytest

import fitz  # PyMuPDF

from fieldstamp.models import TextField, UnknownField
from fieldstamp.pdf import (
    FieldError,
    FieldOverlayEngine,
    InputError,
    overlay_fields,
    parse_field,
)
from fieldstamp.pdf.fonts import EMBEDDED_NAMES, FontResources
from fieldstamp.utils.integrity import compute_bytes_hash
from fieldstamp.utils.logging import document_id_var

from conftest import make_pdf


def _field(field_type, value=None, page=1, x=100, y=100, width=150, height=20):
    field = {
        "type": field_type,
        "position": {"x": x, "y": y},
        "size": {"width": width, "height": height},
        "page": page,
    }
    if value is not None:
        field["value"] = value
    return field


def _open(data):
    return fitz.open(stream=data, filetype="pdf")


@pytest.fixture
def engine(settings):
    return FieldOverlayEngine(settings)


class TestOverlayIdentity:
    """An overlay with no fields leaves page structure intact."""

    def test_empty_fields_preserve_pages(self, engine):
        source = make_pdf(2, width=595, height=842)
        result = engine.overlay(source, [])

        assert result.outcomes == []
        assert result.page_count == 2
        doc = _open(result.pdf_bytes)
        try:
            assert doc.page_count == 2
            for page in doc:
                assert page.rect.width == 595
                assert page.rect.height == 842
            assert "Page 2" in doc[1].get_text()
        finally:
            doc.close()

    def test_hashes(self, engine, sample_pdf):
        result = engine.overlay(sample_pdf, [_field("text", "Hello")])
        assert result.source_hash == compute_bytes_hash(sample_pdf)
        assert result.output_hash == compute_bytes_hash(result.pdf_bytes)
        assert result.source_hash != result.output_hash

    def test_producer_metadata(self, engine, sample_pdf):
        result = engine.overlay(sample_pdf, [])
        doc = _open(result.pdf_bytes)
        try:
            assert doc.metadata["producer"] == "fieldstamp overlay service"
        finally:
            doc.close()


class TestOverlayFields:
    """Tests for applying fields."""

    def test_all_types_applied(self, engine, sample_pdf, signature_data_url):
        fields = [
            _field("text", "John Doe", y=100),
            _field("date", "2024-01-15", y=140),
            _field("checkbox", "checked", y=180, width=20, height=20),
            _field("radio", True, y=220, width=20, height=20),
            _field("signature", signature_data_url, y=260, width=200, height=100),
            _field("image", signature_data_url, y=400, width=100, height=100),
        ]
        result = engine.overlay(sample_pdf, fields)

        assert [outcome.index for outcome in result.outcomes] == list(range(6))
        assert all(outcome.succeeded for outcome in result.outcomes)
        assert result.applied_count == 6
        assert result.failed_count == 0

        doc = _open(result.pdf_bytes)
        try:
            text = doc[0].get_text()
            assert "John Doe" in text
            assert "2024-01-15" in text
            assert len(doc[0].get_images()) == 2
        finally:
            doc.close()

    def test_fields_land_on_their_page(self, engine, three_page_pdf):
        fields = [
            _field("text", "first", page=1),
            _field("text", "third", page=3),
            _field("text", "second", page="2"),
        ]
        result = engine.overlay(three_page_pdf, fields)

        assert [outcome.page for outcome in result.outcomes] == [1, 3, 2]
        doc = _open(result.pdf_bytes)
        try:
            assert "first" in doc[0].get_text()
            assert "second" in doc[1].get_text()
            assert "third" in doc[2].get_text()
            assert "third" not in doc[0].get_text()
        finally:
            doc.close()

    @pytest.mark.parametrize("page", ["--1", "\u00b2", "two"])
    def test_malformed_page_defaults_to_first(self, engine, three_page_pdf, page):
        result = engine.overlay(three_page_pdf, [_field("text", "fallback", page=page)])

        outcome = result.outcomes[0]
        assert outcome.succeeded
        assert outcome.page == 1

    def test_missing_page_defaults_to_first(self, engine, three_page_pdf):
        field = _field("text", "default page")
        del field["page"]
        result = engine.overlay(three_page_pdf, [field])

        assert result.outcomes[0].page == 1
        doc = _open(result.pdf_bytes)
        try:
            assert "default page" in doc[0].get_text()
        finally:
            doc.close()

    def test_text_position(self, engine, sample_pdf):
        """Text drawn for a box at web y=700 sits inside that box on the page."""
        result = engine.overlay(sample_pdf, [_field("text", "Positioned", x=100, y=700, height=20)])
        doc = _open(result.pdf_bytes)
        try:
            hits = doc[0].search_for("Positioned")
            assert hits
            assert 700 <= hits[0].y0 < hits[0].y1 <= 722
            assert hits[0].x0 >= 100
        finally:
            doc.close()

    def test_accepts_parsed_models(self, engine, sample_pdf):
        field = TextField(type="text", value="From model", position={"x": 10, "y": 10}, size={"width": 100, "height": 20})
        result = engine.overlay(sample_pdf, [field])
        assert result.outcomes[0].succeeded


class TestPaintOrder:
    """Fields on a page are painted in list order."""

    @staticmethod
    def _text_seqno(page, text):
        for span in page.get_texttrace():
            if text in "".join(chr(char[0]) for char in span["chars"]):
                return span["seqno"]
        raise AssertionError(f"{text!r} not drawn")

    @staticmethod
    def _white_box_seqno(page, rect):
        for drawing in page.get_drawings():
            if drawing.get("fill") != (1.0, 1.0, 1.0):
                continue
            box = drawing["rect"]
            if all(abs(a - b) < 1 for a, b in zip((box.x0, box.y0, box.x1, box.y1), rect)):
                return drawing["seqno"]
        raise AssertionError(f"no white box at {rect}")

    def test_later_field_covers_earlier(self, engine, sample_pdf):
        fields = [
            _field("text", "under", x=100, y=100, width=150, height=20),
            _field("text", "over", x=120, y=105, width=150, height=20),
        ]
        result = engine.overlay(sample_pdf, fields)

        doc = _open(result.pdf_bytes)
        try:
            page = doc[0]
            under = self._text_seqno(page, "under")
            over_box = self._white_box_seqno(page, (120, 105, 270, 125))
            over = self._text_seqno(page, "over")
            assert under < over_box < over
        finally:
            doc.close()


class TestFontEmbedding:
    """Each face is embedded once per call, however many pages use it."""

    def test_one_font_object_per_face(self, settings, engine, three_page_pdf):
        if FontResources.load(settings).regular.is_builtin:
            pytest.skip("no TrueType font installed; Base-14 fonts are not embedded")

        fields = []
        for page in (1, 2, 3):
            fields.append(_field("text", f"name {page}", page=page, y=200))
            fields.append(_field("checkbox", True, page=page, y=300, width=20, height=20))
        result = engine.overlay(three_page_pdf, fields)
        assert result.applied_count == 6

        doc = _open(result.pdf_bytes)
        try:
            xrefs = {}
            for page in doc:
                for font in page.get_fonts():
                    xrefs.setdefault(font[4], set()).add(font[0])
        finally:
            doc.close()

        for name in EMBEDDED_NAMES.values():
            assert len(xrefs[name]) == 1


class TestFailureIsolation:
    """One bad field never affects the others."""

    @pytest.mark.parametrize("page", [0, -1, 999])
    def test_page_out_of_range(self, engine, three_page_pdf, page):
        fields = [
            _field("text", "before"),
            _field("text", "lost", page=page),
            _field("text", "after", page=3),
        ]
        result = engine.overlay(three_page_pdf, fields)

        bad = result.outcomes[1]
        assert not bad.succeeded
        assert bad.code == "PAGE_OUT_OF_RANGE"
        assert "range" in bad.reason
        assert result.outcomes[0].succeeded
        assert result.outcomes[2].succeeded

        doc = _open(result.pdf_bytes)
        try:
            assert doc.page_count == 3
            assert "before" in doc[0].get_text()
            assert "after" in doc[2].get_text()
        finally:
            doc.close()

    def test_bad_image_between_good_fields(self, engine, sample_pdf):
        fields = [
            _field("text", "alpha", y=100),
            _field("signature", "data:image/png;base64,bm90LWFuLWltYWdl", y=200, width=100, height=50),
            _field("text", "omega", y=300),
        ]
        result = engine.overlay(sample_pdf, fields)

        assert [outcome.succeeded for outcome in result.outcomes] == [True, False, True]
        assert result.outcomes[1].code == "INVALID_IMAGE"
        assert result.applied_count == 2

        doc = _open(result.pdf_bytes)
        try:
            text = doc[0].get_text()
            assert "alpha" in text
            assert "omega" in text
            assert doc[0].get_images() == []
        finally:
            doc.close()

    def test_malformed_descriptor(self, engine, sample_pdf):
        fields = [
            _field("text", "ok"),
            {"type": "text", "value": "no geometry"},
            "not an object",
        ]
        result = engine.overlay(sample_pdf, fields)

        assert result.outcomes[0].succeeded
        assert result.outcomes[1].code == "INVALID_FIELD"
        assert result.outcomes[1].type == "text"
        assert result.outcomes[2].code == "INVALID_FIELD"
        assert result.outcomes[2].type is None

    def test_unknown_type_is_ignored(self, engine, sample_pdf):
        fields = [_field("hologram", "x"), _field("text", "kept")]
        result = engine.overlay(sample_pdf, fields)

        unknown = result.outcomes[0]
        assert unknown.succeeded
        assert unknown.type == "hologram"
        assert "ignored" in unknown.reason
        assert result.outcomes[1].succeeded

    def test_nothing_to_draw(self, engine, sample_pdf):
        result = engine.overlay(sample_pdf, [_field("text", ""), _field("image", "not a data url")])
        assert all(outcome.succeeded for outcome in result.outcomes)
        assert all(outcome.reason == "nothing to draw" for outcome in result.outcomes)


class TestInputErrors:
    """The whole call fails only for an unusable source document."""

    def test_empty_document(self, engine):
        with pytest.raises(InputError) as exc_info:
            engine.overlay(b"", [])
        assert exc_info.value.code == "EMPTY_DOCUMENT"

    def test_not_a_pdf(self, engine):
        with pytest.raises(InputError) as exc_info:
            engine.overlay(b"plain text, no header", [])
        assert exc_info.value.code == "INVALID_PDF_HEADER"

    def test_corrupt_pdf(self, engine):
        with pytest.raises(InputError):
            engine.overlay(b"%PDF-1.7\n" + b"\x00" * 64, [])

    def test_too_large(self, settings, sample_pdf):
        small = settings.model_copy(update={"max_document_bytes": 16})
        with pytest.raises(InputError) as exc_info:
            FieldOverlayEngine(small).overlay(sample_pdf, [])
        assert exc_info.value.code == "DOCUMENT_TOO_LARGE"

    def test_encrypted_pdf(self, engine):
        doc = fitz.open()
        doc.new_page()
        data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user")
        doc.close()

        with pytest.raises(InputError) as exc_info:
            engine.overlay(data, [])
        assert exc_info.value.code == "ENCRYPTED_DOCUMENT"


class TestParseField:
    """Tests for parse_field()."""

    def test_known_type(self):
        field = parse_field(_field("checkbox", "checked", page="2"))
        assert field.type == "checkbox"
        assert field.page == 2
        assert field.checked

    def test_unknown_type(self):
        field = parse_field({"type": "stamp", "page": 2})
        assert isinstance(field, UnknownField)
        assert field.page_index == 1

    def test_negative_size_rejected(self):
        with pytest.raises(FieldError) as exc_info:
            parse_field(_field("text", "x", width=-5))
        assert "size.width" in exc_info.value.message

    def test_non_mapping_rejected(self):
        with pytest.raises(FieldError):
            parse_field(["text"])


class TestPageDimensions:
    """Tests for get_page_dimensions()."""

    def test_dimensions(self, engine):
        dims = engine.get_page_dimensions(make_pdf(2, width=595, height=842))
        assert dims == [
            {"page": 1, "width": 595, "height": 842},
            {"page": 2, "width": 595, "height": 842},
        ]


def test_document_context_restored(engine, sample_pdf):
    """The document fingerprint does not outlive the call."""
    token = document_id_var.set("doc_outer")
    try:
        engine.overlay(sample_pdf, [_field("text", "scoped")])
        assert document_id_var.get() == "doc_outer"
    finally:
        document_id_var.reset(token)

    engine.overlay(sample_pdf, [])
    assert document_id_var.get() is None


def test_overlay_fields_wrapper(settings, sample_pdf):
    result = overlay_fields(sample_pdf, [_field("text", "wrapped")], settings=settings)
    assert result.applied_count == 1
