"""
Edit session: in-memory CRUD/reorder over the canonical component list with
debounced, single-flight persistence and an explicit save status.

One EditSession is built per (user, profile) editing session and owns its
timer handle and in-flight guard. Everything runs on the event loop thread;
the only suspension points are the debounce timer and the write itself.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from profilepage.core.config import get_settings
from profilepage.domain.background import BackgroundStyle, resolve
from profilepage.domain.blocks import (
    BackgroundSpec,
    BlockType,
    ImageBackground,
    ProfileComponent,
    ProfileDocument,
    default_content,
    is_content_type,
)
from profilepage.domain.schema import validate, validate_background, validate_style
from profilepage.services.document_service import DocumentService, UserNotFoundError
from profilepage.services.migration_service import MigrationService

log = logging.getLogger(__name__)

Writer = Callable[[ProfileDocument], Awaitable[Optional[datetime]]]
_UNSET = object()


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    ERROR = "error"


class EditSessionError(Exception):
    """Base exception for edit session operations."""


class ComponentNotFoundError(EditSessionError):
    pass


class InvalidBlockTypeError(EditSessionError):
    pass


class InvalidReorderError(EditSessionError):
    pass


class SessionClosedError(EditSessionError):
    pass


class SessionUnavailableError(EditSessionError):
    """Raised when the user's storage could not be migrated, so editing must not start."""


class EditSession:
    def __init__(
        self,
        user_id: str,
        profile_id: str,
        document: ProfileDocument,
        writer: Writer,
        *,
        debounce_seconds: float | None = None,
        image_opacity_upload: float | None = None,
    ) -> None:
        settings = get_settings()
        self.user_id = user_id
        self.profile_id = profile_id
        # list position is display position; order mirrors it
        self.components: list[ProfileComponent] = [
            replace(c, order=i) for i, c in enumerate(document.sorted_components())
        ]
        self.background: BackgroundSpec = document.background
        self.status = SaveStatus.SAVED
        self.last_saved_at: Optional[datetime] = document.updated_at
        self.last_error: Optional[str] = None
        self._writer = writer
        self._debounce = settings.save_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._render_opacity = settings.image_opacity_default
        self._upload_opacity = (
            settings.image_opacity_upload_default if image_opacity_upload is None else image_opacity_upload
        )
        self._timer: Optional[asyncio.TimerHandle] = None
        self._write_task: Optional[asyncio.Task] = None
        self._saving = False
        self._dropped = False
        self._closed = False
        self._revision = 0
        self._saved_revision = 0

    # -------------------------------------- state --------------------------------------
    @property
    def is_saving(self) -> bool:
        """True while a write is in flight."""
        return self._saving

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    @property
    def is_dirty(self) -> bool:
        return self._revision != self._saved_revision

    @property
    def closed(self) -> bool:
        return self._closed

    def document(self) -> ProfileDocument:
        """Snapshot of the in-memory state (copies, safe to hand to a writer)."""
        return ProfileDocument(
            components=[
                ProfileComponent(
                    id=c.id,
                    type=c.type,
                    order=c.order,
                    content=dict(c.content),
                    style=dict(c.style) if c.style else None,
                )
                for c in self.components
            ],
            background=self.background,
            updated_at=self.last_saved_at,
        )

    def background_preview(self) -> BackgroundStyle:
        return resolve(self.background, default_image_opacity=self._render_opacity)

    def status_payload(self) -> dict:
        return {
            "status": self.status.value,
            "saving": self._saving,
            "pending": self._timer is not None,
            "dirty": self.is_dirty,
            "lastSavedAt": self.last_saved_at.isoformat() if self.last_saved_at else None,
            "error": self.last_error,
        }

    # -------------------------------------- mutations --------------------------------------
    def _find_index(self, component_id: str) -> int:
        for index, component in enumerate(self.components):
            if component.id == component_id:
                return index
        raise ComponentNotFoundError(f"Component {component_id} not found")

    def _reindex(self) -> None:
        for position, component in enumerate(self.components):
            component.order = position

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError("Edit session already closed")

    def add(self, block_type) -> ProfileComponent:
        self._check_open()
        bt = BlockType.parse(block_type)
        if not is_content_type(bt):
            raise InvalidBlockTypeError(f"Cannot add block of type {block_type!r}")
        component = ProfileComponent(
            id=uuid.uuid4().hex,
            type=bt,
            order=len(self.components),
            content=validate(bt, default_content(bt)) or {},
        )
        self.components.append(component)
        self._mutated()
        return component

    def update(self, component_id: str, content, style=_UNSET) -> ProfileComponent:
        self._check_open()
        index = self._find_index(component_id)
        current = self.components[index]
        updated = ProfileComponent(
            id=current.id,
            type=current.type,
            order=current.order,
            content=validate(current.type, content) or {},
            style=current.style if style is _UNSET else validate_style(style),
        )
        self.components[index] = updated
        self._mutated()
        return updated

    def delete(self, component_id: str) -> None:
        self._check_open()
        index = self._find_index(component_id)
        del self.components[index]
        self._reindex()
        self._mutated()

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move one element, then every element's order becomes its new position."""
        self._check_open()
        size = len(self.components)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise InvalidReorderError(f"Indexes out of range: {from_index} -> {to_index} (size {size})")
        if from_index == to_index:
            return
        moved = self.components.pop(from_index)
        self.components.insert(to_index, moved)
        self._reindex()
        self._mutated()

    def set_background(self, raw) -> BackgroundSpec:
        self._check_open()
        spec = validate_background(raw)
        if isinstance(spec, ImageBackground) and spec.opacity is None:
            # freshly chosen images take the upload default
            spec = replace(spec, opacity=self._upload_opacity)
        self.background = spec
        self._mutated()
        return self.background

    # -------------------------------------- persistence --------------------------------------
    def _mutated(self) -> None:
        self._revision += 1
        self.status = SaveStatus.SAVING
        self._schedule()

    def _cancel_timer(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def _schedule(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._start_write()

    def _start_write(self) -> bool:
        """Issue one write of the current state unless one is already in flight (dropped, not queued)."""
        if self._saving:
            self._dropped = True
            log.debug("write for %s/%s dropped: another write in flight", self.user_id, self.profile_id)
            return False
        self._saving = True
        self.status = SaveStatus.SAVING
        loop = asyncio.get_running_loop()
        self._write_task = loop.create_task(self._write(self._revision, self.document()))
        return True

    async def _write(self, revision: int, snapshot: ProfileDocument) -> None:
        try:
            saved_at = await self._writer(snapshot)
        except Exception as exc:
            log.exception("saving profile %s/%s failed", self.user_id, self.profile_id)
            self.status = SaveStatus.ERROR
            self.last_error = str(exc) or exc.__class__.__name__
        else:
            self._saved_revision = max(self._saved_revision, revision)
            self.last_saved_at = saved_at or datetime.now(timezone.utc)
            self.last_error = None
            self.status = SaveStatus.SAVED if not self.is_dirty else SaveStatus.SAVING
            log.debug("saved profile %s/%s at revision %d", self.user_id, self.profile_id, revision)
        finally:
            self._saving = False
            self._write_task = None
            if self._dropped:
                # a trigger arrived mid-flight: arm a fresh debounce instead of queueing
                self._dropped = False
                if self.is_dirty and self._timer is None and not self._closed:
                    self._schedule()

    def retry(self) -> bool:
        """Manual retry after an error: write now."""
        self._check_open()
        self._cancel_timer()
        return self._start_write()

    def flush(self) -> bool:
        """
        Page-hide / unload hook: cancel the pending timer and issue an immediate
        write (best effort, not awaited). Returns True when the caller should
        warn the user, i.e. a write is in flight.
        """
        had_timer = self._cancel_timer()
        if (had_timer or self.is_dirty) and not self._closed:
            self._start_write()
        return self._saving

    async def wait_idle(self) -> None:
        while self._write_task is not None:
            await asyncio.shield(self._write_task)

    async def close(self) -> SaveStatus:
        """Tear down: cancel the timer, let the in-flight write finish, then write anything left."""
        if self._closed:
            return self.status
        self._cancel_timer()
        await self.wait_idle()
        if self.is_dirty:
            self._start_write()
            await self.wait_idle()
        self._closed = True
        self._cancel_timer()
        return self.status


class EditSessionRegistry:
    """Open edit sessions keyed by (user, profile). Lives on app.state."""

    def __init__(
        self,
        documents: DocumentService | None = None,
        migrations: MigrationService | None = None,
        *,
        debounce_seconds: float | None = None,
    ) -> None:
        self.documents = documents or DocumentService()
        self.migrations = migrations or self.documents.migrations
        self._debounce = debounce_seconds
        self._sessions: dict[tuple[str, str], EditSession] = {}
        self._current: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def _writer_for(self, user_id: str, profile_id: str) -> Writer:
        async def write(snapshot: ProfileDocument) -> Optional[datetime]:
            return await run_in_threadpool(self.documents.save_document, user_id, profile_id, snapshot)

        return write

    async def open(self, user_id: str, profile_id: str | None = None) -> EditSession:
        """Return the live session, creating it (after migration) when needed."""
        async with self._lock:
            if profile_id is None and user_id in self._current:
                profile_id = self._current[user_id]
            if profile_id is not None:
                existing = self._sessions.get((user_id, profile_id))
                if existing and not existing.closed:
                    return existing
            if not await run_in_threadpool(self.migrations.migrate, user_id):
                if await run_in_threadpool(self.documents.repository.get_user, user_id) is None:
                    raise UserNotFoundError(f"User {user_id} not found")
                raise SessionUnavailableError(f"Storage for user {user_id} is not migrated")
            pid = profile_id or await run_in_threadpool(self.documents.active_profile_id, user_id)
            existing = self._sessions.get((user_id, pid))
            if existing and not existing.closed:
                self._current[user_id] = pid
                return existing
            document = await run_in_threadpool(self.documents.load_document, user_id, pid)
            session = EditSession(user_id, pid, document, self._writer_for(user_id, pid), debounce_seconds=self._debounce)
            self._sessions[(user_id, pid)] = session
            self._current[user_id] = pid
            log.info("opened edit session %s/%s", user_id, pid)
            return session

    def get(self, user_id: str, profile_id: str | None = None) -> Optional[EditSession]:
        pid = profile_id or self._current.get(user_id)
        if pid is None:
            return None
        return self._sessions.get((user_id, pid))

    async def close(self, user_id: str, profile_id: str | None = None) -> Optional[SaveStatus]:
        pid = profile_id or self._current.get(user_id)
        if pid is None:
            return None
        session = self._sessions.pop((user_id, pid), None)
        if self._current.get(user_id) == pid:
            self._current.pop(user_id, None)
        if session is None:
            return None
        status = await session.close()
        log.info("closed edit session %s/%s (%s)", user_id, pid, status.value)
        return status

    async def close_all(self) -> None:
        for user_id, pid in list(self._sessions):
            await self.close(user_id, pid)
