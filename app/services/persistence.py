"""
Persistence gateways for PRDs, comments and app settings.

Public API
----------
PersistenceGateway              -> abstract contract consumed by the controller
DatabasePersistenceGateway      -> SQLAlchemy async store (prds / prd_comments / app_settings)
ApiPersistenceGateway           -> httpx client for the REST API in app/routers

``fetch_by_id`` returns the raw stored record (a camelCase dict) or ``None``;
callers normalize it at the load boundary with ``normalize_prd``.
"""
from __future__ import annotations

import abc
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.database_models import CommentRecord, PRDRecord, SettingsRecord
from app.models.schemas import PRD, AppSettings, ApprovalStatus, Comment
from app.utils.helpers import utc_now

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PersistenceError(Exception):
    """The store could not complete an operation."""


class PRDNotFoundError(PersistenceError):
    def __init__(self, prd_id: str) -> None:
        super().__init__(f"PRD {prd_id} not found")
        self.prd_id = prd_id


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class PersistenceGateway(abc.ABC):
    """Key-addressed store for PRDs and app settings. Every call may fail."""

    @abc.abstractmethod
    async def fetch_by_id(self, prd_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored record for *prd_id*, or None when unknown."""

    @abc.abstractmethod
    async def save(self, prd: PRD) -> PRD:
        """
        Upsert *prd* and return it as stored. Repeating an identical call is harmless.

        On an existing record the upvote count and approval status are left as
        stored; only toggle_upvote and update_status change them.
        """

    @abc.abstractmethod
    async def add_comment(self, prd_id: str, comment: Comment) -> List[Comment]:
        """Store *comment* and return the full list, newest first."""

    @abc.abstractmethod
    async def toggle_upvote(self, prd_id: str, increment: bool) -> int:
        """Add or remove one upvote and return the new count (never below 0)."""

    @abc.abstractmethod
    async def update_status(self, prd_id: str, status: ApprovalStatus) -> None:
        """Set the approval status."""

    @abc.abstractmethod
    async def get_settings(self) -> AppSettings:
        """Return the persisted app settings, defaulting missing fields."""

    @abc.abstractmethod
    async def save_settings(self, app_settings: AppSettings) -> None:
        """Persist app settings."""


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

def _comment_date(created_at: Optional[datetime]) -> str:
    return created_at.date().isoformat() if created_at else ""


def _parse_comment_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _comment_from_record(record: CommentRecord) -> Comment:
    return Comment(
        id=record.id,
        author=record.author,
        avatar=record.avatar or "",
        text=record.text,
        date=_comment_date(record.created_at),
    )


def _record_to_dict(record: PRDRecord, comments: List[Comment]) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "productName": record.product_name,
        "shortDescription": record.short_description,
        "sections": record.sections,
        "isPublic": record.is_public,
        "publicSettings": record.public_settings,
        "upvotes": record.upvotes,
        "comments": [c.model_dump(by_alias=True) for c in comments],
        "lastUpdated": record.last_updated.isoformat() if record.last_updated else None,
        "status": record.status,
        "approvalStatus": record.approval_status,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "createdBy": record.created_by,
    }


class DatabasePersistenceGateway(PersistenceGateway):
    """
    PRD store on the async SQLAlchemy engine.

    Each operation runs in its own session and commits before returning.
    Upvote changes are a single atomic UPDATE so concurrent calls never lose
    increments.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings_key: Optional[str] = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings_key = settings_key or settings.SETTINGS_KEY

    async def _list_comments(self, session: AsyncSession, prd_id: str) -> List[Comment]:
        result = await session.execute(
            select(CommentRecord)
            .where(CommentRecord.prd_id == prd_id)
            .order_by(CommentRecord.created_at.desc())
        )
        return [_comment_from_record(r) for r in result.scalars().all()]

    async def fetch_by_id(self, prd_id: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as session:
            record = await session.get(PRDRecord, prd_id)
            if record is None:
                return None
            comments = await self._list_comments(session, prd_id)
            return _record_to_dict(record, comments)

    async def save(self, prd: PRD) -> PRD:
        async with self._session_factory() as session:
            record = await session.get(PRDRecord, prd.id)
            if record is None:
                record = PRDRecord(
                    id=prd.id,
                    created_by=prd.created_by,
                    upvotes=prd.upvotes,
                    approval_status=prd.approval_status.value,
                )
                if prd.created_at is not None:
                    record.created_at = prd.created_at
                session.add(record)

            record.title = prd.title
            record.product_name = prd.product_name
            record.short_description = prd.short_description
            record.sections = [s.model_dump(by_alias=True) for s in prd.sections]
            record.is_public = prd.is_public
            record.public_settings = prd.public_settings.model_dump(by_alias=True)
            record.status = prd.status.value
            # upvotes and approval_status belong to toggle_upvote / update_status once the row exists
            record.last_updated = prd.last_updated

            # Comments are owned by add_comment; only ones never stored before are inserted.
            if prd.comments:
                result = await session.execute(
                    select(CommentRecord.id).where(
                        CommentRecord.id.in_([c.id for c in prd.comments])
                    )
                )
                known = set(result.scalars().all())
                base = utc_now()
                # the list is newest first, so insert oldest first with increasing timestamps
                for offset, comment in enumerate(reversed(prd.comments)):
                    if comment.id in known:
                        continue
                    created = _parse_comment_date(comment.date) or base
                    session.add(
                        CommentRecord(
                            id=comment.id,
                            prd_id=prd.id,
                            author=comment.author,
                            avatar=comment.avatar,
                            text=comment.text,
                            created_at=created + timedelta(microseconds=offset),
                        )
                    )

            stored = {
                "upvotes": record.upvotes,
                "approval_status": ApprovalStatus(record.approval_status),
            }
            await session.commit()
            logger.debug("Saved PRD %s", prd.id)
        return prd.model_copy(update=stored)

    async def add_comment(self, prd_id: str, comment: Comment) -> List[Comment]:
        async with self._session_factory() as session:
            record = await session.get(PRDRecord, prd_id)
            if record is None:
                raise PRDNotFoundError(prd_id)
            session.add(
                CommentRecord(
                    id=comment.id,
                    prd_id=prd_id,
                    author=comment.author,
                    avatar=comment.avatar,
                    text=comment.text,
                    created_at=utc_now(),
                )
            )
            await session.flush()
            comments = await self._list_comments(session, prd_id)
            await session.commit()
        logger.info("Comment %s added to PRD %s", comment.id, prd_id)
        return comments

    async def toggle_upvote(self, prd_id: str, increment: bool) -> int:
        if increment:
            new_value = PRDRecord.upvotes + 1
        else:
            new_value = case((PRDRecord.upvotes > 0, PRDRecord.upvotes - 1), else_=0)

        async with self._session_factory() as session:
            result = await session.execute(
                update(PRDRecord)
                .where(PRDRecord.id == prd_id)
                .values(upvotes=new_value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise PRDNotFoundError(prd_id)
            count = await session.scalar(
                select(PRDRecord.upvotes).where(PRDRecord.id == prd_id)
            )
            await session.commit()
        return int(count or 0)

    async def update_status(self, prd_id: str, status: ApprovalStatus) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(PRDRecord)
                .where(PRDRecord.id == prd_id)
                .values(approval_status=ApprovalStatus(status).value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise PRDNotFoundError(prd_id)
            await session.commit()
        logger.info("PRD %s approval status -> %s", prd_id, ApprovalStatus(status).value)

    async def get_settings(self) -> AppSettings:
        async with self._session_factory() as session:
            record = await session.get(SettingsRecord, self._settings_key)
            if record is None or not isinstance(record.data, dict):
                return AppSettings()
            return AppSettings.model_validate(record.data)

    async def save_settings(self, app_settings: AppSettings) -> None:
        async with self._session_factory() as session:
            record = await session.get(SettingsRecord, self._settings_key)
            data = app_settings.model_dump(by_alias=True)
            if record is None:
                session.add(SettingsRecord(key=self._settings_key, data=data))
            else:
                record.data = data
            await session.commit()


# ---------------------------------------------------------------------------
# REST client implementation
# ---------------------------------------------------------------------------

class ApiPersistenceGateway(PersistenceGateway):
    """
    Talks to the Propel PRD REST API (``/api/prds``, ``/api/settings``).

    Pass *transport* to route requests somewhere other than the network,
    e.g. ``httpx.ASGITransport(app=app)`` in tests.
    """

    REQUEST_TIMEOUT: float = 30.0

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(self.REQUEST_TIMEOUT, connect=10.0)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def fetch_by_id(self, prd_id: str) -> Optional[Dict[str, Any]]:
        async with self._client() as client:
            resp = await client.get(f"/api/prds/{prd_id}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def save(self, prd: PRD) -> PRD:
        async with self._client() as client:
            resp = await client.put(
                f"/api/prds/{prd.id}", json=prd.model_dump(mode="json", by_alias=True)
            )
        resp.raise_for_status()
        return PRD.model_validate(resp.json())

    async def add_comment(self, prd_id: str, comment: Comment) -> List[Comment]:
        async with self._client() as client:
            resp = await client.post(
                f"/api/prds/{prd_id}/comments", json=comment.model_dump(by_alias=True)
            )
        if resp.status_code == 404:
            raise PRDNotFoundError(prd_id)
        resp.raise_for_status()
        return [Comment.model_validate(c) for c in resp.json()]

    async def toggle_upvote(self, prd_id: str, increment: bool) -> int:
        async with self._client() as client:
            resp = await client.post(
                f"/api/prds/{prd_id}/upvote", json={"increment": increment}
            )
        if resp.status_code == 404:
            raise PRDNotFoundError(prd_id)
        resp.raise_for_status()
        return int(resp.json()["upvotes"])

    async def update_status(self, prd_id: str, status: ApprovalStatus) -> None:
        async with self._client() as client:
            resp = await client.put(
                f"/api/prds/{prd_id}/status", json={"status": ApprovalStatus(status).value}
            )
        if resp.status_code == 404:
            raise PRDNotFoundError(prd_id)
        resp.raise_for_status()

    async def get_settings(self) -> AppSettings:
        async with self._client() as client:
            resp = await client.get("/api/settings")
        resp.raise_for_status()
        return AppSettings.model_validate(resp.json())

    async def save_settings(self, app_settings: AppSettings) -> None:
        async with self._client() as client:
            resp = await client.put(
                "/api/settings", json=app_settings.model_dump(by_alias=True)
            )
        resp.raise_for_status()
