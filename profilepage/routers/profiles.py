from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from profilepage.services.document_service import (
    DocumentService,
    LastProfileError,
    ProfileNotFoundError,
    UserNotFoundError,
)
from profilepage.services.identity import current_user_id

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


class CreateProfileBody(BaseModel):
    name: Optional[str] = None
    description: str = ""


def _get_documents(request: Request) -> DocumentService:
    svc = getattr(getattr(request.app, "state", None), "document_service", None)
    if not svc:
        raise RuntimeError("DocumentService not configured")
    return svc


def _require_user(request: Request) -> str:
    uid = current_user_id(request)
    if not uid:
        raise HTTPException(401, "Not signed in")
    return uid


def _migrated_service(request: Request, uid: str) -> DocumentService:
    svc = _get_documents(request)
    if not svc.migrations.migrate(uid):
        raise HTTPException(503, "Profile storage could not be migrated")
    return svc


@router.get("")
def list_profiles(request: Request):
    uid = _require_user(request)
    svc = _migrated_service(request, uid)
    try:
        profiles = svc.list_profiles(uid)
    except UserNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return {"profiles": [p.to_dict() for p in profiles], "activeProfileId": svc.active_profile_id(uid)}


@router.post("", status_code=201)
def create_profile(body: CreateProfileBody, request: Request):
    uid = _require_user(request)
    svc = _migrated_service(request, uid)
    try:
        summary = svc.create_profile(uid, body.name, body.description)
    except UserNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return summary.to_dict()


@router.post("/{profile_id}/activate")
def activate_profile(profile_id: str, request: Request):
    uid = _require_user(request)
    svc = _migrated_service(request, uid)
    try:
        svc.set_active_profile(uid, profile_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return {"activeProfileId": profile_id}


@router.post("/{profile_id}/duplicate", status_code=201)
def duplicate_profile(profile_id: str, request: Request):
    uid = _require_user(request)
    svc = _migrated_service(request, uid)
    try:
        summary = svc.duplicate_profile(uid, profile_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return summary.to_dict()


@router.delete("/{profile_id}")
async def delete_profile(profile_id: str, request: Request):
    uid = await run_in_threadpool(_require_user, request)
    svc = await run_in_threadpool(_migrated_service, request, uid)
    registry = getattr(request.app.state, "edit_sessions", None)
    if registry is not None:
        await registry.close(uid, profile_id)
    try:
        await run_in_threadpool(svc.delete_profile, uid, profile_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except LastProfileError as exc:
        raise HTTPException(409, str(exc)) from exc
    return {"ok": True}


@router.get("/migration")
def migration_status(request: Request):
    uid = _require_user(request)
    svc = _get_documents(request)
    user = svc.repository.get_user(uid)
    if not user:
        raise HTTPException(404, "User not found")
    return {
        "migrated": bool(user.profile_migrated),
        "migrationDate": user.migration_date.isoformat() if user.migration_date else None,
        "defaultProfileId": user.default_profile_id,
    }


@router.post("/migration")
def run_migration(request: Request):
    uid = _require_user(request)
    svc = _get_documents(request)
    ok = svc.migrations.migrate(uid)
    if not ok:
        raise HTTPException(503, "Profile storage could not be migrated")
    return {"migrated": True, "activeProfileId": svc.migrations.get_active_profile_id(uid)}
