import logging
import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import ORJSONResponse

from sbd_receiver.app.errors import SBDReceiverError
from sbd_receiver.app.processor.module import SBDReceiverModule
from sbd_receiver.app.schemas.verification import ReceiverErrorKind

logger = logging.getLogger("sbd_receiver.api")

router = APIRouter(tags=["Inbound SBD"])


_STATUS_BY_KIND = {
    ReceiverErrorKind.PARSE_ERROR: status.HTTP_400_BAD_REQUEST,
    ReceiverErrorKind.CONFIGURATION_MISSING: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.MISSING_IDENTIFIER: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.URL_MISMATCH: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.CERTIFICATE_DECODE_ERROR: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.CERTIFICATE_MISMATCH: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.LOOKUP_FAULT: status.HTTP_502_BAD_GATEWAY,
    ReceiverErrorKind.LOOKUP_EMPTY: status.HTTP_403_FORBIDDEN,
    ReceiverErrorKind.HANDLER_FAULT: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ReceiverErrorKind.UNEXPECTED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Dependency providers
# =============================================================================

def get_message_id(
    message_id: Annotated[
        Optional[str],
        Header(alias="Message-ID", description="AS2 message id"),
    ] = None,
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Trace ID, used when no Message-ID is sent"),
    ] = None,
) -> str:
    """Take the AS2 Message-ID, else the correlation ID, else generate one."""
    candidate = (message_id or x_correlation_id or "").strip().strip("<>")
    if not candidate or len(candidate) > 256:
        return str(uuid.uuid4())
    return candidate


def get_module(request: Request) -> SBDReceiverModule:
    module = getattr(request.app.state, "module", None)
    if module is None:
        raise RuntimeError("SBD receiver module not initialized")
    return module


# =============================================================================
# POST /as2/sbd
# =============================================================================

@router.post(
    "/as2/sbd",
    summary="Receive a decrypted, signature-checked SBD envelope",
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"description": "Not a Standard Business Document"},
        403: {"description": "Document is not addressed to this access point"},
        502: {"description": "SMP lookup failed"},
        500: {"description": "Handler failure"},
    },
)
async def receive_sbd(
    request: Request,
    module: Annotated[SBDReceiverModule, Depends(get_module)],
    message_id: Annotated[str, Depends(get_message_id)],
) -> ORJSONResponse:
    raw = await request.body()

    try:
        document = await module.on_receive(raw, message_id)
    except SBDReceiverError as exc:
        http_status = _STATUS_BY_KIND.get(
            exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        logger.warning(
            "sbd_receipt_rejected",
            extra={
                "message_id": exc.message_id,
                "kind": exc.kind.value,
                "status_code": http_status,
            },
        )
        raise HTTPException(status_code=http_status, detail=exc.to_dict()) from exc

    return ORJSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={
            "status": "accepted",
            "message_id": document.instance_identifier or message_id,
            "correlation_id": message_id,
        },
    )
