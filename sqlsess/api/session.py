"""
Session API endpoints.

A thin HTTP surface over the store: read the caller's session, merge values
into it, or delete it. Endpoints are sync so store calls run on the
threadpool, where the per-session locks apply.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from sqlsess.core.session import Session
from sqlsess.core.utils.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_SESSION_NAME = "default"


class SessionState(BaseModel):
    """Response model for a session"""
    name: str
    is_new: bool
    values: Dict[str, str]
    last_updated: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "default",
                "is_new": False,
                "values": {"theme": "dark"},
                "last_updated": "2024-05-01T12:30:00.123456789Z",
            }
        }
    }


class SessionUpdate(BaseModel):
    """Request model for merging values into a session"""
    values: Dict[str, str]

    model_config = {
        "json_schema_extra": {
            "example": {"values": {"theme": "dark"}}
        }
    }


def get_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def _state(session: Session) -> SessionState:
    return SessionState(
        name=session.name,
        is_new=session.is_new,
        values=session.public_values(),
        last_updated=session.last_updated,
    )


def _storage_unavailable(operation: str, error: SQLAlchemyError) -> HTTPException:
    logger.error(
        f"Session {operation} failed",
        extra={"error_type": type(error).__name__},
    )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Session storage is unavailable",
    )


@router.get("/session", response_model=SessionState)
def read_session(
    request: Request,
    name: str = Query(DEFAULT_SESSION_NAME, min_length=1, max_length=255),
) -> SessionState:
    """Return the caller's session. Unknown callers get an empty, unsaved session."""
    store = get_store(request)
    try:
        session = store.get(request, name)
    except SQLAlchemyError as e:
        raise _storage_unavailable("load", e) from e
    return _state(session)


@router.put("/session", response_model=SessionState)
def update_session(
    update: SessionUpdate,
    request: Request,
    response: Response,
    name: str = Query(DEFAULT_SESSION_NAME, min_length=1, max_length=255),
) -> SessionState:
    """Merge values into the caller's session and save it."""
    store = get_store(request)
    if store.last_updated_key in update.values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"'{store.last_updated_key}' is a reserved session key",
        )

    try:
        session = store.get(request, name)
        session.values.update(update.values)
        store.save(request, response, session)
    except SQLAlchemyError as e:
        raise _storage_unavailable("save", e) from e
    return _state(session)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    request: Request,
    response: Response,
    name: str = Query(DEFAULT_SESSION_NAME, min_length=1, max_length=255),
) -> None:
    """Delete the caller's session and expire the identity cookie."""
    store = get_store(request)
    try:
        session = store.get(request, name)
        store.delete(session, response)
    except SQLAlchemyError as e:
        raise _storage_unavailable("delete", e) from e
