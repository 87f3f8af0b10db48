"""
History Endpoints
=================

GET /api/history and /api/history/{session_id}.

Signed-in users see their own records; anonymous callers see the anonymous
records of their browser session.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from core.record_store import RecordStore
from exceptions import StorageUnavailableError
from api.dependencies import get_current_user_id_optional, get_record_store
from api.models.responses import HistoryResponse


logger = logging.getLogger(__name__)

router = APIRouter()

USER_HISTORY_LIMIT = 50
SESSION_HISTORY_LIMIT = 20


async def _history(
    session_id: Optional[str],
    user_id: Optional[int],
    record_store: Optional[RecordStore]
) -> HistoryResponse:
    if record_store is None:
        raise StorageUnavailableError("records", "Record store not initialized")

    try:
        if user_id is not None:
            records = await run_in_threadpool(
                record_store.get_user_history, user_id, USER_HISTORY_LIMIT
            )
            return HistoryResponse(
                records=records,
                count=len(records),
                authenticated=True,
                userId=user_id,
            )

        if not session_id:
            return HistoryResponse(
                sessionId=None,
                message="ログインすると履歴が永続的に保存されます",
            )

        records = await run_in_threadpool(
            record_store.get_session_history, session_id, SESSION_HISTORY_LIMIT
        )
    except SQLAlchemyError as e:
        logger.error(f"History query failed: {e}")
        raise StorageUnavailableError("records", type(e).__name__)

    return HistoryResponse(
        records=records,
        count=len(records),
        authenticated=False,
        sessionId=session_id,
    )


@router.get("/history", response_model=HistoryResponse)
async def history(
    x_session_id: Optional[str] = Header(default=None),
    user_id: Optional[int] = Depends(get_current_user_id_optional),
    record_store: Optional[RecordStore] = Depends(get_record_store)
) -> HistoryResponse:
    """History for the bearer token's user, or for the ``X-Session-Id`` session."""
    return await _history(x_session_id, user_id, record_store)


@router.get("/history/{session_id}", response_model=HistoryResponse)
async def session_history(
    session_id: str,
    user_id: Optional[int] = Depends(get_current_user_id_optional),
    record_store: Optional[RecordStore] = Depends(get_record_store)
) -> HistoryResponse:
    """History of an anonymous session (a valid bearer token takes priority)."""
    return await _history(session_id, user_id, record_store)
