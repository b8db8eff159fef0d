"""
Overlay API Router.
Paths: /v1/overlay, /v1/verify
"""
import base64
import binascii

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from fieldstamp.config import get_settings, Settings
from fieldstamp.exceptions import ValidationException, exception_for_input_error
from fieldstamp.models import (
    ErrorResponse,
    OverlayRequest,
    OverlayResponse,
    VerifyIntegrityRequest,
    VerifyIntegrityResponse,
)
from fieldstamp.pdf import FieldOverlayEngine, InputError
from fieldstamp.utils.integrity import compute_audit_hash, verify_integrity
from fieldstamp.utils.logging import fingerprint, get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1",
    tags=["overlay"],
)


def _decode_document(document_base64: str) -> bytes:
    """Decode the base64 document body (data URL prefix allowed)."""
    if document_base64.startswith("data:") and "," in document_base64:
        document_base64 = document_base64.split(",", 1)[1]
    try:
        return base64.b64decode(document_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationException(f"document_base64 is not valid base64: {e}")


@router.post(
    "/overlay",
    response_model=OverlayResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed request body"},
        413: {"model": ErrorResponse, "description": "Source document too large"},
        422: {"model": ErrorResponse, "description": "Source document rejected or body invalid"},
    },
)
async def overlay_document(
    request_body: OverlayRequest,
    settings: Settings = Depends(get_settings),
):
    """Stamp fields onto a PDF and return the new document with per-field outcomes."""
    source = _decode_document(request_body.document_base64)
    engine = FieldOverlayEngine(settings)

    try:
        result = await run_in_threadpool(engine.overlay, source, request_body.fields)
    except InputError as e:
        raise exception_for_input_error(e)

    audit_hash = compute_audit_hash({
        "action": "sign",
        "original_hash": result.source_hash,
        "new_hash": result.output_hash,
        "field_count": len(result.outcomes),
        "applied_count": result.applied_count,
    })
    logger.info(
        f"overlay: applied={result.applied_count}/{len(result.outcomes)}, "
        f"audit_fp={fingerprint(audit_hash)}"
    )

    return OverlayResponse(
        document_base64=base64.b64encode(result.pdf_bytes).decode("ascii"),
        page_count=result.page_count,
        original_hash=result.source_hash,
        signed_hash=result.output_hash,
        audit_hash=audit_hash,
        field_count=len(result.outcomes),
        applied_count=result.applied_count,
        outcomes=result.outcomes,
    )


@router.post(
    "/verify",
    response_model=VerifyIntegrityResponse,
    responses={400: {"model": ErrorResponse}},
)
async def verify_document(request_body: VerifyIntegrityRequest):
    """Re-hash a document and report whether it still matches the recorded hash."""
    current = _decode_document(request_body.document_base64)
    result = verify_integrity(request_body.expected_hash, current)
    if result.changed:
        logger.warning(
            f"verify: document changed, expected_fp={fingerprint(result.expected_hash)}, "
            f"current_fp={fingerprint(result.current_hash)}"
        )
    return VerifyIntegrityResponse(**result.to_dict())
