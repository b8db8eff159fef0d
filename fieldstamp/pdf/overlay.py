"""
Field overlay engine using PyMuPDF (fitz).

Stamps caller-supplied field annotations (text, date, checkbox, radio,
signature and image) onto the pages of an existing PDF and returns the new
document together with one FieldOutcome per input field.

Fields are painted in list order within a page, so later fields cover earlier
ones. A field that fails is recorded and skipped; only an unusable source
document aborts the call.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import fitz  # PyMuPDF
from pydantic import BaseModel, TypeAdapter, ValidationError

from fieldstamp.config import Settings, get_settings
from fieldstamp.models import (
    FieldBase,
    FieldDescriptor,
    FieldOutcome,
    FieldType,
    KnownField,
    UnknownField,
)
from fieldstamp.pdf.document import load_document, page_geometry, serialize_document
from fieldstamp.pdf.errors import FieldError
from fieldstamp.pdf.fonts import FontResources
from fieldstamp.pdf.renderers import get_renderer
from fieldstamp.pdf.surface import PageSurface
from fieldstamp.utils.integrity import compute_bytes_hash
from fieldstamp.utils.logging import fingerprint, reset_context, set_context

logger = logging.getLogger(__name__)

_known_field_adapter = TypeAdapter(KnownField)
_FIELD_TYPES = {t.value for t in FieldType}

RawField = Union[Mapping[str, Any], BaseModel]


def parse_field(raw: RawField) -> FieldDescriptor:
    """
    Build a field descriptor from caller input.

    Raises:
        FieldError: If the descriptor is not a mapping or its geometry/value is malformed
    """
    if isinstance(raw, (FieldBase, UnknownField)):
        return raw
    if not isinstance(raw, Mapping):
        raise FieldError(f"Field must be an object, got {type(raw).__name__}")

    field_type = raw.get("type")
    try:
        if field_type in _FIELD_TYPES:
            return _known_field_adapter.validate_python(dict(raw))
        return UnknownField.model_validate({**raw, "type": str(field_type)})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise FieldError(f"Invalid {field_type} field: {problems}") from e


@dataclass
class OverlayResult:
    """Output of one overlay call."""
    pdf_bytes: bytes
    outcomes: List[FieldOutcome]
    page_count: int
    source_hash: str
    output_hash: str

    @property
    def applied_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)


@dataclass
class OverlayContext:
    """Per-call state. Owned by exactly one overlay call, never shared."""
    doc: fitz.Document
    fonts: FontResources
    settings: Settings
    surfaces: Dict[int, PageSurface] = field(default_factory=dict)

    def surface(self, page_index: int) -> PageSurface:
        if page_index not in self.surfaces:
            self.surfaces[page_index] = PageSurface(self.doc[page_index], self.fonts)
        return self.surfaces[page_index]


def _raw_type(raw: RawField) -> Optional[str]:
    if isinstance(raw, Mapping):
        value = raw.get("type")
        return None if value is None else str(value)
    return getattr(raw, "type", None)


def group_fields_by_page(
    fields: Sequence[RawField],
    page_count: int,
) -> Tuple["OrderedDict[int, List[Tuple[int, FieldDescriptor]]]", List[FieldOutcome]]:
    """
    Parse descriptors and bucket them by 0-based page index.

    Input order is preserved inside each bucket. Fields that fail to parse or
    target a page outside 1..page_count are returned as failed outcomes.

    Returns:
        (groups, rejected) where groups maps page index to (input index, field)
    """
    groups: "OrderedDict[int, List[Tuple[int, FieldDescriptor]]]" = OrderedDict()
    rejected: List[FieldOutcome] = []

    for index, raw in enumerate(fields):
        try:
            descriptor = parse_field(raw)
        except FieldError as e:
            rejected.append(FieldOutcome(
                index=index,
                type=_raw_type(raw),
                succeeded=False,
                code=e.code,
                reason=e.message,
            ))
            continue

        page_index = descriptor.page_index
        if page_index < 0 or page_index >= page_count:
            rejected.append(FieldOutcome(
                index=index,
                type=descriptor.type,
                page=descriptor.page,
                succeeded=False,
                code="PAGE_OUT_OF_RANGE",
                reason=f"page out of range: {descriptor.page} (document has {page_count} pages)",
            ))
            continue

        groups.setdefault(page_index, []).append((index, descriptor))

    return groups, rejected


def render_field(ctx: OverlayContext, page_index: int, index: int, descriptor: FieldDescriptor) -> FieldOutcome:
    """Render one field inside an isolation boundary."""
    outcome = FieldOutcome(index=index, type=descriptor.type, page=descriptor.page, succeeded=True)
    try:
        renderer = get_renderer(descriptor)
        drawn = renderer(ctx.surface(page_index), descriptor, ctx.settings)
        if not drawn:
            if isinstance(descriptor, UnknownField):
                outcome.reason = f"unsupported field type {descriptor.type!r} ignored"
            else:
                outcome.reason = "nothing to draw"
    except FieldError as e:
        logger.warning(f"Field {index} ({descriptor.type}) on page {descriptor.page} failed: {e.message}")
        outcome.succeeded = False
        outcome.code = e.code
        outcome.reason = e.message
    except Exception as e:
        logger.exception(f"Unexpected error rendering field {index} ({descriptor.type})")
        outcome.succeeded = False
        outcome.code = "RENDER_FAILED"
        outcome.reason = f"Failed to render {descriptor.type} field: {e}"
    return outcome


def dispatch_fields(ctx: OverlayContext, fields: Sequence[RawField]) -> List[FieldOutcome]:
    """
    Apply every field to the document in ctx.

    Returns:
        One FieldOutcome per input field, ordered by input index
    """
    groups, outcomes = group_fields_by_page(fields, ctx.doc.page_count)

    for page_index, page_fields in groups.items():
        for index, descriptor in page_fields:
            outcomes.append(render_field(ctx, page_index, index, descriptor))

    outcomes.sort(key=lambda outcome: outcome.index)
    return outcomes


class FieldOverlayEngine:
    """
    Field overlay using PyMuPDF.

    Holds settings only; every overlay() call builds its own document, fonts
    and surfaces, so one engine can serve concurrent calls.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def overlay(self, source: bytes, fields: Sequence[RawField]) -> OverlayResult:
        """
        Stamp fields onto a PDF.

        Args:
            source: Source PDF bytes
            fields: Field descriptors (mappings or parsed models) in paint order

        Returns:
            OverlayResult with the new PDF bytes, per-field outcomes and hashes

        Raises:
            InputError: If the source document is empty, malformed or encrypted
        """
        doc = load_document(source, max_bytes=self.settings.max_document_bytes)
        source_hash = compute_bytes_hash(source)
        context_token = set_context(document_id=fingerprint(source_hash, "doc_"))

        try:
            try:
                ctx = OverlayContext(
                    doc=doc,
                    fonts=FontResources.load(self.settings),
                    settings=self.settings,
                )
                outcomes = dispatch_fields(ctx, fields)
                page_count = doc.page_count
                pdf_bytes = serialize_document(doc, self.settings)
            finally:
                doc.close()

            result = OverlayResult(
                pdf_bytes=pdf_bytes,
                outcomes=outcomes,
                page_count=page_count,
                source_hash=source_hash,
                output_hash=compute_bytes_hash(pdf_bytes),
            )
            logger.info(
                f"Applied {result.applied_count} of {len(outcomes)} fields "
                f"({page_count} pages, source={fingerprint(source_hash)}, output={fingerprint(result.output_hash)})"
            )
            return result
        finally:
            reset_context(context_token)

    def get_page_dimensions(self, source: bytes) -> List[Dict[str, float]]:
        """
        Get dimensions of every page of a PDF.

        Returns:
            List of dicts with page (1-indexed), width, height in points
        """
        doc = load_document(source, max_bytes=self.settings.max_document_bytes)
        try:
            return [
                {"page": geometry.index + 1, "width": geometry.width, "height": geometry.height}
                for geometry in page_geometry(doc)
            ]
        finally:
            doc.close()


def overlay_fields(
    source: bytes,
    fields: Sequence[RawField],
    settings: Optional[Settings] = None,
) -> OverlayResult:
    """Convenience wrapper around FieldOverlayEngine.overlay()."""
    return FieldOverlayEngine(settings).overlay(source, fields)
