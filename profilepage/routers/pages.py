from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from profilepage.services.document_service import DocumentService, UserNotFoundError
from profilepage.services.edit_session import EditSessionRegistry, SessionUnavailableError
from profilepage.services.identity import current_user_id
from profilepage.services.renderer import RenderMode, render

router = APIRouter(tags=["pages"])


def _get_templates(request: Request) -> Jinja2Templates:
    tpl = getattr(getattr(request.app, "state", None), "templates", None)
    if tpl:
        return tpl
    raise RuntimeError("Templates not configured")


def _get_documents(request: Request) -> DocumentService:
    svc = getattr(getattr(request.app, "state", None), "document_service", None)
    if not svc:
        raise RuntimeError("DocumentService not configured")
    return svc


def _get_registry(request: Request) -> EditSessionRegistry:
    registry = getattr(getattr(request.app, "state", None), "edit_sessions", None)
    if not registry:
        raise RuntimeError("EditSessionRegistry not configured")
    return registry


@router.get("/p/{username}", response_class=HTMLResponse)
def public_profile(username: str, request: Request):
    svc = _get_documents(request)
    try:
        document = svc.load_public(username)
    except UserNotFoundError as exc:
        raise HTTPException(404, "Profile not found") from exc
    page = render(document, RenderMode.PUBLIC)
    return _get_templates(request).TemplateResponse(
        request,
        "profile_page.html",
        {"page": page, "username": username},
    )


@router.get("/edit", response_class=HTMLResponse)
async def editor_page(request: Request, profile_id: str | None = None):
    uid = await run_in_threadpool(current_user_id, request)
    if not uid:
        return RedirectResponse("/", status_code=303)
    try:
        session = await _get_registry(request).open(uid, profile_id)
    except UserNotFoundError as exc:
        raise HTTPException(404, "User not found") from exc
    except SessionUnavailableError as exc:
        raise HTTPException(503, str(exc)) from exc
    document = session.document()
    page = render(document, RenderMode.EDITABLE)
    return _get_templates(request).TemplateResponse(
        request,
        "editor_page.html",
        {"page": page, "profile_id": session.profile_id, "save": session.status_payload()},
    )
