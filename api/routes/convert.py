"""
Conversion Endpoint
===================

POST /api/convert - turn an informal nursing memo into a clinical document.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from api.dependencies import get_current_user_id_optional, get_pipeline
from api.middleware.error_handler import error_response
from api.middleware.rate_limiter import convert_rate_limit, limiter
from api.middleware.request_context import client_ip
from api.models.requests import ConvertRequest
from api.models.responses import ConvertResponse
from exceptions import TapKarteError
from models import ClientInfo, utc_now
from pipeline import ConversionPipeline


logger = logging.getLogger(__name__)

router = APIRouter()


def _performance(started: float) -> dict:
    return {
        "responseTime": int((time.perf_counter() - started) * 1000),
        "timestamp": utc_now().isoformat() + "Z",
    }


@router.post("/convert", response_model=ConvertResponse)
@limiter.limit(convert_rate_limit)
async def convert(
    request: Request,
    body: ConvertRequest,
    x_session_id: Optional[str] = Header(default=None),
    user_id: Optional[int] = Depends(get_current_user_id_optional),
    pipeline: ConversionPipeline = Depends(get_pipeline)
):
    """
    Convert a memo.

    Options may be sent flat (``style``, ``docType``, ``format``,
    ``charLimit``) or nested under ``options``. A bearer token links the
    record to the signed-in user; otherwise ``X-Session-Id`` groups
    anonymous records and a new session id is issued when it is absent.

    Errors use the standard envelope plus a ``performance`` block.
    """
    started = time.perf_counter()
    style, doc_type, output_format, char_limit = body.resolved_options()
    client = ClientInfo(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    try:
        result = await pipeline.aconvert(
            body.text,
            style,
            doc_type,
            output_format,
            char_limit,
            session_id=x_session_id or None,
            user_id=user_id,
            client=client,
        )
    except TapKarteError as e:
        logger.warning(f"Conversion rejected: {e.error_type}")
        return error_response(e, performance=_performance(started))

    return result.to_response_dict()
