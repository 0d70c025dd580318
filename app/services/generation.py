"""
Text generation gateway backed by Google Gemini.

Uses the Gemini ``models/{model}:generateContent`` REST endpoint over httpx.
All prompts are module-level constants so they can be tuned without touching
logic code.

Public API
----------
GenerationGateway.generate_section(title, context)   -> str
GenerationGateway.generate_description(product_name) -> str
GenerationGateway.enhance(text, instruction)         -> str

GeminiGenerationService resolves the API key and model on every call from a
settings source (normally the controller's AppSettings), falling back to the
GEMINI_API_KEY / GEMINI_MODEL configuration.
"""
from __future__ import annotations

import abc
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from app.config import settings
from app.models.schemas import AppSettings, GenerationContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GenerationError(Exception):
    """The generator could not produce text."""


class MissingCredentialError(GenerationError):
    """No Gemini API key is configured."""


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SECTION_PROMPT = """\
You are an expert Product Manager at a top-tier tech company.
Your task is to write the specific section: "{section_title}" for a Product Requirements Document (PRD).

Product Context:
- Product Name: {product_name}
- Brief Description: {short_description}

Existing Content Context (if any):
{existing_sections}

Instructions:
- Write only the content for the "{section_title}" section.
- Be professional, concise, and structured.
- Use bullet points where appropriate.
- Do not include the section title in the output, just the content.
- Format using Markdown.\
"""

_DESCRIPTION_PROMPT = """\
Write a concise, compelling 2-3 sentence product description for a product named "{product_name}".
Focus on what it might do and who it is for.\
"""

_ENHANCE_PROMPT = """\
You are an expert editor.
Instruction: {instruction}
Original Text:
"{text}"

Output the improved text only. Keep the same format (Markdown).\
"""


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class GenerationGateway(abc.ABC):
    """Opaque text generator. Each call may fail; empty output means "no change"."""

    @abc.abstractmethod
    async def generate_section(self, title: str, context: GenerationContext) -> str:
        ...

    @abc.abstractmethod
    async def generate_description(self, product_name: str) -> str:
        ...

    @abc.abstractmethod
    async def enhance(self, text: str, instruction: str) -> str:
        ...


# ---------------------------------------------------------------------------
# Gemini implementation
# ---------------------------------------------------------------------------

class GeminiGenerationService(GenerationGateway):
    """
    Gemini client over httpx.

    Pass *transport* to replace the network in tests (``httpx.MockTransport``).
    """

    SECTION_PROMPT = _SECTION_PROMPT
    DESCRIPTION_PROMPT = _DESCRIPTION_PROMPT
    ENHANCE_PROMPT = _ENHANCE_PROMPT

    def __init__(
        self,
        settings_source: Optional[Callable[[], AppSettings]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = settings.GEMINI_BASE_URL.rstrip("/")
        self.timeout = httpx.Timeout(float(settings.GEMINI_TIMEOUT), connect=10.0)
        self._settings_source = settings_source
        self._transport = transport

    # ------------------------------------------------------------------
    # Public generation methods
    # ------------------------------------------------------------------

    async def generate_section(self, title: str, context: GenerationContext) -> str:
        prompt = self.SECTION_PROMPT.format(
            section_title=title,
            product_name=context.product_name,
            short_description=context.short_description,
            existing_sections=json.dumps(context.existing_sections, ensure_ascii=False),
        )
        try:
            return await self._generate(prompt)
        except MissingCredentialError:
            raise
        except Exception as exc:
            logger.error("Error generating PRD section %r: %s", title, exc)
            raise GenerationError(
                "Failed to generate content. Check your API Key or Network."
            ) from exc

    async def generate_description(self, product_name: str) -> str:
        prompt = self.DESCRIPTION_PROMPT.format(product_name=product_name)
        try:
            return await self._generate(prompt)
        except MissingCredentialError:
            raise
        except Exception as exc:
            logger.error("Error generating description: %s", exc)
            raise GenerationError("Failed to generate description") from exc

    async def enhance(self, text: str, instruction: str) -> str:
        """Rewrite *text* per *instruction*. Returns *text* unchanged on any failure."""
        prompt = self.ENHANCE_PROMPT.format(instruction=instruction, text=text)
        try:
            enhanced = await self._generate(prompt)
        except Exception as exc:
            logger.error("Error enhancing text: %s", exc)
            return text
        return enhanced or text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_credentials(self) -> Tuple[str, str]:
        """Return (api_key, model); user settings win over configuration."""
        user = self._settings_source() if self._settings_source else None
        api_key = (user.gemini_api_key if user else "") or settings.GEMINI_API_KEY
        model = (user.gemini_model if user else "") or settings.GEMINI_MODEL
        if not api_key:
            logger.warning(
                "API Key is missing. Please configure it in Settings or via GEMINI_API_KEY."
            )
            raise MissingCredentialError("API Key missing")
        return api_key, model

    async def _generate(self, prompt: str) -> str:
        api_key, model = self._resolve_credentials()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self.base_url}/models/{model}:generateContent",
                headers={"x-goog-api-key": api_key},
                json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
            )

        if resp.status_code != 200:
            raise GenerationError(
                f"Gemini returned HTTP {resp.status_code}: {resp.text[:300]}"
            )
        return self._extract_text(resp.json())

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        """Concatenate the text parts of the first candidate."""
        candidates = body.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
