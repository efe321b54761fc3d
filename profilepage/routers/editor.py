from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from profilepage.services.document_service import (
    DocumentService,
    MigrationPendingError,
    ProfileNotFoundError,
    ResetDisabledError,
    UserNotFoundError,
)
from profilepage.services.edit_session import (
    ComponentNotFoundError,
    EditSession,
    EditSessionRegistry,
    InvalidBlockTypeError,
    InvalidReorderError,
    SessionClosedError,
    SessionUnavailableError,
)
from profilepage.services.identity import current_user_id

router = APIRouter(prefix="/api/editor", tags=["editor"])


class AddComponentBody(BaseModel):
    type: str


class UpdateComponentBody(BaseModel):
    content: dict[str, Any] = Field(default_factory=dict)
    style: Optional[dict[str, Any]] = None


class ReorderBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_index: int = Field(alias="fromIndex")
    to_index: int = Field(alias="toIndex")


def _get_registry(request: Request) -> EditSessionRegistry:
    registry = getattr(getattr(request.app, "state", None), "edit_sessions", None)
    if not registry:
        raise RuntimeError("EditSessionRegistry not configured")
    return registry


def _get_documents(request: Request) -> DocumentService:
    svc = getattr(getattr(request.app, "state", None), "document_service", None)
    if not svc:
        raise RuntimeError("DocumentService not configured")
    return svc


async def _require_user(request: Request) -> str:
    uid = await run_in_threadpool(current_user_id, request)
    if not uid:
        raise HTTPException(401, "Not signed in")
    return uid


async def _open_session(request: Request, profile_id: str | None) -> EditSession:
    uid = await _require_user(request)
    try:
        return await _get_registry(request).open(uid, profile_id)
    except (UserNotFoundError, ProfileNotFoundError) as exc:
        raise HTTPException(404, str(exc)) from exc
    except SessionUnavailableError as exc:
        raise HTTPException(503, str(exc)) from exc


def _session_payload(session: EditSession) -> dict:
    preview = session.background_preview()
    return {
        "profileId": session.profile_id,
        "document": session.document().to_dict(),
        "backgroundStyle": preview.css,
        "save": session.status_payload(),
    }


@router.get("/document")
async def get_document(request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    return _session_payload(session)


@router.post("/components", status_code=201)
async def add_component(body: AddComponentBody, request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    try:
        component = session.add(body.type)
    except InvalidBlockTypeError as exc:
        raise HTTPException(422, str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {"component": component.to_dict(), "save": session.status_payload()}


@router.patch("/components/{component_id}")
async def update_component(component_id: str, body: UpdateComponentBody, request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    kwargs = {"style": body.style} if "style" in body.model_fields_set else {}
    try:
        component = session.update(component_id, body.content, **kwargs)
    except ComponentNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {"component": component.to_dict(), "save": session.status_payload()}


@router.delete("/components/{component_id}")
async def delete_component(component_id: str, request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    try:
        session.delete(component_id)
    except ComponentNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {"ok": True, "save": session.status_payload()}


@router.post("/components/reorder")
async def reorder_components(body: ReorderBody, request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    try:
        session.reorder(body.from_index, body.to_index)
    except InvalidReorderError as exc:
        raise HTTPException(422, str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {
        "order": [c.id for c in session.document().sorted_components()],
        "save": session.status_payload(),
    }


@router.put("/background")
async def set_background(body: dict[str, Any], request: Request, profile_id: str | None = None):
    session = await _open_session(request, profile_id)
    try:
        spec = session.set_background(body)
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {
        "background": spec.to_dict(),
        "backgroundStyle": session.background_preview().css,
        "save": session.status_payload(),
    }


@router.get("/status")
async def save_status(request: Request, profile_id: str | None = None):
    uid = await _require_user(request)
    session = _get_registry(request).get(uid, profile_id)
    if session is None:
        raise HTTPException(404, "No open edit session")
    return session.status_payload()


@router.post("/retry")
async def retry_save(request: Request, profile_id: str | None = None):
    uid = await _require_user(request)
    session = _get_registry(request).get(uid, profile_id)
    if session is None:
        raise HTTPException(404, "No open edit session")
    try:
        started = session.retry()
    except SessionClosedError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {"started": started, "save": session.status_payload()}


@router.post("/flush")
async def flush(request: Request, profile_id: str | None = None):
    """Page-hide / unload beacon."""
    uid = await _require_user(request)
    session = _get_registry(request).get(uid, profile_id)
    if session is None:
        return {"warn": False}
    return {"warn": session.flush()}


@router.post("/close")
async def close_session(request: Request, profile_id: str | None = None):
    uid = await _require_user(request)
    status = await _get_registry(request).close(uid, profile_id)
    return {"closed": status is not None, "status": status.value if status else None}


@router.post("/reset")
async def reset_document(request: Request, profile_id: str | None = None):
    uid = await _require_user(request)
    registry = _get_registry(request)
    # an open session would overwrite the reset with its next save
    await registry.close(uid, profile_id)
    try:
        document = await run_in_threadpool(_get_documents(request).reset_document, uid, profile_id)
    except ResetDisabledError as exc:
        raise HTTPException(403, str(exc)) from exc
    except MigrationPendingError as exc:
        raise HTTPException(503, str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return {"document": document.to_dict()}
