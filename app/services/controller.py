"""
PRD editing session: the single source of truth for the active document.

``PRDController`` owns the in-memory PRD, the current view, the app settings
and the in-flight operation flags. It mediates every read/write to the
persistence and generation gateways.

Lifecycle
---------
    controller = PRDController(persistence, address=AddressBar("/?id=abc"))
    await controller.initialize()          # settings + routing + load-and-merge
    controller.set_view("edit")
    controller.update_context("product_name", "Acme")
    await controller.generate_all()
    await controller.confirm_publish(PublicSettings(allow_comments=True))
    await controller.aclose()

Mutation methods are synchronous and replace the whole PRD object. They
schedule a debounced autosave, so after ``initialize`` they must be called
from inside the running event loop.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qs, quote, urlsplit

from app.config import settings as config
from app.models.schemas import (
    PRD,
    AppSettings,
    ApprovalDetails,
    ApprovalStatus,
    Comment,
    GenerationContext,
    PRDStatus,
    PublicSettings,
    ViewState,
)
from app.services.autosave import Debouncer
from app.services.exporter import parse_import
from app.services.generation import GeminiGenerationService, GenerationGateway
from app.services.persistence import PersistenceError, PersistenceGateway, PRDNotFoundError
from app.services.section_catalog import create_default_prd, normalize_prd
from app.services.webhook import WebhookNotifier
from app.utils.helpers import generate_id, utc_now

logger = logging.getLogger(__name__)

GUEST_AUTHOR = "Guest User"

_CONTEXT_FIELDS = {
    "product_name": "product_name",
    "productName": "product_name",
    "short_description": "short_description",
    "shortDescription": "short_description",
}


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

class AddressBar:
    """
    The page address and its history stack.

    ``replace_state`` rewrites the current entry, ``push_state`` adds a new
    one (a back-button-visible navigation).
    """

    def __init__(self, url: str = "/") -> None:
        self._history: List[str] = [url]

    @property
    def url(self) -> str:
        return self._history[-1]

    @property
    def history(self) -> List[str]:
        return list(self._history)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    def query_param(self, name: str) -> Optional[str]:
        values = parse_qs(urlsplit(self.url).query).get(name)
        return values[0] if values else None

    def replace_state(self, url: str) -> None:
        self._history[-1] = url

    def push_state(self, url: str) -> None:
        self._history.append(url)


# ---------------------------------------------------------------------------
# Loading flags
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class LoadingStates:
    generating_sections: Dict[str, bool] = dataclasses.field(default_factory=dict)
    is_generating_description: bool = False
    is_generating_all: bool = False

    def is_generating(self, section_id: str) -> bool:
        return self.generating_sections.get(section_id, False)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class PRDController:
    """Document state controller for one editing session."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        generator: Optional[GenerationGateway] = None,
        notifier: Optional[WebhookNotifier] = None,
        address: Optional[AddressBar] = None,
        autosave_delay: Optional[float] = None,
        rollback_on_failure: Optional[bool] = None,
    ) -> None:
        self._persistence = persistence
        self._generator = generator or GeminiGenerationService(settings_source=lambda: self.settings)
        self._notifier = notifier or WebhookNotifier()
        self.address = address or AddressBar(config.PUBLIC_BASE_URL)
        self.rollback_on_failure = (
            config.ROLLBACK_OPTIMISTIC_UPDATES if rollback_on_failure is None else rollback_on_failure
        )
        delay = config.AUTOSAVE_DELAY_SECONDS if autosave_delay is None else autosave_delay
        self._autosave = Debouncer(delay, name="autosave")

        self.prd: PRD = create_default_prd()
        self.view: ViewState = ViewState.LANDING
        self.settings: AppSettings = AppSettings()
        self.is_loading = True
        self.is_publish_dialog_open = False
        self.loading = LoadingStates()
        self._initialized = False

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Resolve the initial state once: load settings, then the PRD named by
        the ``id`` query parameter (if any) merged over a fresh default.
        """
        if self._initialized:
            return
        self._initialized = True

        try:
            self.settings = await self._persistence.get_settings()
        except Exception as exc:
            logger.error("Failed to load settings, using defaults: %s", exc)

        prd_id = self.address.query_param("id")
        requested_view = self.address.query_param("view")

        if prd_id:
            record = None
            try:
                record = await self._persistence.fetch_by_id(prd_id)
            except Exception as exc:
                logger.error("Failed to fetch PRD %s from URL: %s", prd_id, exc)
            else:
                if record is None:
                    logger.warning("PRD with ID %s not found. Starting new.", prd_id)

            if record is not None:
                self.prd = normalize_prd(record)
                self.view = self._parse_view(requested_view) or ViewState.CONFIG

        self.is_loading = False
        self._on_change()

    @staticmethod
    def _parse_view(value: Optional[str]) -> Optional[ViewState]:
        if not value:
            return None
        try:
            return ViewState(value)
        except ValueError:
            logger.warning("Ignoring unknown view %r", value)
            return None

    # ------------------------------------------------------------------
    # Change hook: autosave + address sync
    # ------------------------------------------------------------------

    def _commit(self, prd: PRD) -> None:
        self.prd = prd
        self._on_change()

    def _on_change(self) -> None:
        if self.is_loading or self.view == ViewState.LANDING:
            return

        self._autosave.schedule(self._autosave_current)

        if not self.address.query_param("id") and self.prd.id:
            self.address.replace_state(f"{self.address.path}?id={quote(self.prd.id)}")

    async def _autosave_current(self) -> None:
        prd = self.prd
        if not prd.has_meaningful_content():
            logger.debug("Skipping auto-save of empty PRD %s", prd.id)
            return
        try:
            await self._persistence.save(prd)
        except Exception as exc:
            logger.error("Auto-save failed: %s", exc)

    @property
    def has_pending_autosave(self) -> bool:
        return self._autosave.pending

    async def wait_for_autosave(self) -> None:
        """Wait until the scheduled autosave (if any) and any save in flight have finished."""
        await self._autosave.wait()

    async def aclose(self) -> None:
        """Drop an autosave still in its delay and let one already saving finish."""
        self._autosave.cancel()
        await self._autosave.wait()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_view(self, target: Union[ViewState, str]) -> None:
        self.view = ViewState(target)
        self._on_change()

    # ------------------------------------------------------------------
    # Document mutations
    # ------------------------------------------------------------------

    def _next_timestamp(self):
        now = utc_now()
        return now if now >= self.prd.last_updated else self.prd.last_updated

    def toggle_section(self, section_id: str) -> None:
        """Flip ``is_enabled``. Leaves content and ``last_updated`` alone."""
        sections = [
            s.model_copy(update={"is_enabled": not s.is_enabled}) if s.id == section_id else s
            for s in self.prd.sections
        ]
        self._commit(self.prd.model_copy(update={"sections": sections}))

    def update_section_content(self, section_id: str, content: str) -> None:
        sections = [
            s.model_copy(update={"content": content}) if s.id == section_id else s
            for s in self.prd.sections
        ]
        self._commit(
            self.prd.model_copy(
                update={"sections": sections, "last_updated": self._next_timestamp()}
            )
        )

    def update_context(self, field: str, value: str) -> None:
        """Set ``product_name`` or ``short_description``."""
        name = _CONTEXT_FIELDS.get(field)
        if name is None:
            raise ValueError(f"Unknown context field: {field}")
        self._commit(
            self.prd.model_copy(update={name: value, "last_updated": self._next_timestamp()})
        )

    # ------------------------------------------------------------------
    # AI generation
    # ------------------------------------------------------------------

    def get_generation_context(self) -> GenerationContext:
        """Snapshot of the product and every enabled, non-empty section."""
        existing = {
            s.title: s.content for s in self.prd.sections if s.is_enabled and s.content
        }
        return GenerationContext(
            product_name=self.prd.product_name,
            short_description=self.prd.short_description,
            existing_sections=existing,
        )

    def _has_product_name(self) -> bool:
        return bool(self.prd.product_name.strip())

    async def generate_description(self) -> None:
        if not self._has_product_name():
            return

        self.loading.is_generating_description = True
        try:
            description = await self._generator.generate_description(self.prd.product_name)
            if description:
                self.update_context("short_description", description)
        except Exception as exc:
            logger.error("Failed to generate description: %s", exc)
        finally:
            self.loading.is_generating_description = False

    async def generate_section(self, section_id: str) -> None:
        if not self._has_product_name():
            return
        section = self.prd.get_section(section_id)
        if section is None:
            logger.warning("Cannot generate unknown section %s", section_id)
            return

        self.loading.generating_sections[section_id] = True
        try:
            content = await self._generator.generate_section(
                section.title, self.get_generation_context()
            )
            if content:
                self.update_section_content(section_id, content)
        except Exception as exc:
            logger.error("Failed to generate %s: %s", section.title, exc)
        finally:
            self.loading.generating_sections[section_id] = False

    async def generate_all(self) -> List[str]:
        """
        Fill every enabled, empty section, one at a time.

        Sections are generated sequentially and each call sees the content
        produced for the sections before it. Returns the ids that were filled.
        """
        if not self._has_product_name():
            return []

        targets = [s for s in self.prd.sections if s.is_enabled and not s.content]
        filled: List[str] = []

        self.loading.is_generating_all = True
        try:
            for section in targets:
                self.loading.generating_sections[section.id] = True
                try:
                    content = await self._generator.generate_section(
                        section.title, self.get_generation_context()
                    )
                    if content:
                        self.update_section_content(section.id, content)
                        filled.append(section.id)
                except Exception as exc:
                    logger.error("Failed to generate %s: %s", section.title, exc)
                finally:
                    self.loading.generating_sections[section.id] = False
        finally:
            self.loading.is_generating_all = False

        return filled

    async def enhance_section(self, section_id: str, instruction: str) -> None:
        """Rewrite a section's existing content following *instruction*."""
        section = self.prd.get_section(section_id)
        if section is None or not section.content.strip() or not instruction.strip():
            return

        self.loading.generating_sections[section_id] = True
        try:
            enhanced = await self._generator.enhance(section.content, instruction)
            if enhanced and enhanced != section.content:
                self.update_section_content(section_id, enhanced)
        except Exception as exc:
            logger.error("Failed to enhance %s: %s", section.title, exc)
        finally:
            self.loading.generating_sections[section_id] = False

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def open_publish_dialog(self) -> None:
        self.is_publish_dialog_open = True

    def close_publish_dialog(self) -> None:
        self.is_publish_dialog_open = False

    async def confirm_publish(
        self, public_settings: Union[PublicSettings, Mapping[str, Any]]
    ) -> None:
        """
        Mark the PRD public/published with *public_settings*, save it right
        away and switch to the public view. A failed save is logged; the
        client-side transition is kept.
        """
        if not isinstance(public_settings, PublicSettings):
            public_settings = PublicSettings.model_validate(public_settings)

        published = self.prd.model_copy(
            update={
                "is_public": True,
                "status": PRDStatus.PUBLISHED,
                "public_settings": public_settings.model_copy(),
            }
        )
        self._commit(published)

        try:
            await self._persistence.save(published)
        except Exception as exc:
            logger.error("Failed to save published PRD %s: %s", published.id, exc)

        self.is_publish_dialog_open = False
        self.set_view(ViewState.PUBLIC)
        self.address.push_state(
            f"{self.address.path}?id={quote(published.id)}&view={ViewState.PUBLIC.value}"
        )

    # ------------------------------------------------------------------
    # Public view actions (optimistic)
    # ------------------------------------------------------------------

    async def add_public_comment(self, text: str, author: str = GUEST_AUTHOR) -> Comment:
        comment = Comment(
            id=generate_id(),
            author=author,
            avatar=f"https://picsum.photos/seed/{generate_id()}/64/64",
            text=text,
            date=utc_now().date().isoformat(),
        )
        prd_id = self.prd.id
        self._commit(self.prd.model_copy(update={"comments": [comment, *self.prd.comments]}))

        try:
            await self._persistence.add_comment(prd_id, comment)
        except Exception as exc:
            logger.error("Failed to save comment: %s", exc)
            if self.rollback_on_failure:
                remaining = [c for c in self.prd.comments if c.id != comment.id]
                self._commit(self.prd.model_copy(update={"comments": remaining}))
        return comment

    async def upvote(self, increment: bool = True) -> int:
        """Adjust the upvote counter (never below zero) and persist the change."""
        prd_id = self.prd.id
        before = self.prd.upvotes
        after = before + 1 if increment else max(0, before - 1)
        self._commit(self.prd.model_copy(update={"upvotes": after}))

        try:
            await self._persistence.toggle_upvote(prd_id, increment)
        except Exception as exc:
            logger.error("Failed to save upvote: %s", exc)
            if self.rollback_on_failure and after != before:
                delta = after - before
                reverted = max(0, self.prd.upvotes - delta)
                self._commit(self.prd.model_copy(update={"upvotes": reverted}))
        return self.prd.upvotes

    async def change_status(
        self,
        status: Union[ApprovalStatus, str],
        details: Optional[ApprovalDetails] = None,
    ) -> None:
        """
        Set the approval status. When *details* are supplied, the approval
        webhook is delivered to the configured URL; delivery failures never
        undo the status change.
        """
        status = ApprovalStatus(status)
        prd_id = self.prd.id
        previous = self.prd.approval_status
        self._commit(self.prd.model_copy(update={"approval_status": status}))

        try:
            await self._persistence.update_status(prd_id, status)
        except Exception as exc:
            logger.error("Failed to update status: %s", exc)
            if self.rollback_on_failure:
                if self.prd.approval_status == status:
                    self._commit(self.prd.model_copy(update={"approval_status": previous}))
                return

        if details is None:
            return
        try:
            await self._notifier.trigger_approval(
                self.settings.webhook_url,
                prd_id,
                status,
                details.title or self.prd.product_name,
                comment=details.comment,
                approver_name=details.approver_name,
                approver_email=details.approver_email,
            )
        except Exception as exc:
            logger.warning("Approval webhook failed: %s", exc)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def _adopt(self, prd: PRD) -> None:
        self.prd = prd
        self.view = ViewState.CONFIG
        self.address.replace_state(f"{self.address.path}?id={quote(prd.id)}")
        self._on_change()

    def import_document(self, raw: Union[str, bytes, Mapping[str, Any]]) -> PRD:
        """
        Adopt a previously exported PRD (JSON text or parsed dict).

        Raises:
            ImportValidationError: the data is not a valid PRD export
        """
        prd = parse_import(raw)
        self._adopt(prd)
        return prd

    async def import_by_id(self, prd_id: str) -> PRD:
        """
        Load a stored PRD by id and make it the active document.

        Raises:
            ValueError: blank id
            PRDNotFoundError: no PRD with that id
            PersistenceError: the store could not be reached
        """
        prd_id = prd_id.strip()
        if not prd_id:
            raise ValueError("Please enter a PRD ID")
        try:
            record = await self._persistence.fetch_by_id(prd_id)
        except Exception as exc:
            logger.error("Failed to import PRD %s: %s", prd_id, exc)
            raise PersistenceError(
                "Failed to import PRD. Please check the ID and try again."
            ) from exc
        if record is None:
            raise PRDNotFoundError(prd_id)

        prd = normalize_prd(record)
        self._adopt(prd)
        return prd

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def needs_api_key(self) -> bool:
        """True when generation would fail for lack of a key (drives the warning banner)."""
        return not (self.settings.gemini_api_key or config.GEMINI_API_KEY)

    async def update_settings(self, new_settings: Union[AppSettings, Mapping[str, Any]]) -> None:
        if not isinstance(new_settings, AppSettings):
            new_settings = AppSettings.model_validate(new_settings)
        self.settings = new_settings
        try:
            await self._persistence.save_settings(new_settings)
        except Exception as exc:
            logger.error("Failed to save settings: %s", exc)

    async def test_webhook(self, url: Optional[str] = None) -> bool:
        return await self._notifier.test_connection(url or self.settings.webhook_url)
