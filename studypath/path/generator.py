"""
Content generator client.

Requests structured learning content from Gemini through the
``google.generativeai`` SDK and parses it into domain models. The SDK call is
blocking and runs in a worker thread. The client returns raw candidate
content: gating policy (which modules are unlocked, which are cleared) is
applied by ``studypath.path.progression``, not here.

Every failure (API error, timeout, blocked prompt, malformed JSON, schema
mismatch) is surfaced as a single GenerationFailed. There is no retry policy
at this layer.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Any, Protocol

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from config import Settings, get_settings
from studypath.core.errors import GenerationFailed
from studypath.path.models import ChatMessage, ChatRole, Exercise, Module, SubModule, tag_exercise
from studypath.path.prompts import (
    build_assistant_instruction,
    build_exercise_prompt,
    build_learning_path_prompt,
    build_module_detail_prompt,
)
from studypath.path.schemas import (
    EXERCISE_LIST_SCHEMA,
    LEARNING_PATH_SCHEMA,
    MODULE_DETAIL_SCHEMA,
    SAFETY_SETTINGS,
)

_MODULE_LIST = TypeAdapter(list[Module])
_SUB_MODULE_LIST = TypeAdapter(list[SubModule])
_EXERCISE_LIST = TypeAdapter(list[Exercise])


class ContentGenerator(Protocol):
    """What the orchestrator needs from a content source."""

    async def generate_initial_path(self, topic: str) -> list[Module]: ...

    async def generate_module_detail(self, module_title: str, topic: str) -> list[SubModule]: ...

    async def generate_exercises(self, content: str) -> list[Exercise]: ...

    async def chat_reply(self, history: Sequence[ChatMessage], message: str, context: str) -> str: ...


class GeminiContentGenerator:
    """Gemini structured generation via google.generativeai."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        chat_model: str | None = None,
        timeout_ms: int | None = None,
    ):
        """
        Initialize the generator.

        Args:
            api_key: Gemini API key (uses settings if not provided)
            model_name: Model for path and module content (uses settings if not provided)
            chat_model: Model for assistant replies (uses settings if not provided)
            timeout_ms: Request timeout in milliseconds (uses settings if not provided)
        """
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model_name = model_name or settings.ai_model
        self.chat_model = chat_model or settings.chat_model
        self.max_output_tokens = settings.chat_max_output_tokens
        self.timeout_seconds = (timeout_ms or settings.generation_timeout_ms) / 1000.0
        self._client = None

        if not self.api_key:
            raise ValueError("Gemini API key required")

    @property
    def client(self):
        """Lazy-load the Gemini model used for structured content."""
        if self._client is None:
            self._client = self._build_model(self.model_name)
        return self._client

    def _build_model(self, model_name: str, system_instruction: str | None = None):
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        return genai.GenerativeModel(
            model_name=model_name,
            system_instruction=system_instruction,
            safety_settings=SAFETY_SETTINGS,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _generate(self, model: Any, contents: Any, generation_config: dict[str, Any]) -> str:
        """Run one blocking generate_content call and return its text."""
        try:
            response = await asyncio.to_thread(
                model.generate_content,
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.timeout_seconds},
            )
        except Exception as e:  # SDK raises google.api_core and transport errors alike
            logger.error(f"Gemini request failed: {e!r}")
            raise GenerationFailed(f"request failed: {e!r}") from e

        return self._extract_text(response)

    @staticmethod
    def _extract_text(response: Any) -> str:
        if not response.candidates:
            feedback = getattr(response, "prompt_feedback", None)
            reason = getattr(feedback, "block_reason", None) or "no candidates"
            raise GenerationFailed(f"empty response ({reason})")

        try:
            text = response.text.strip()
        except ValueError as e:
            raise GenerationFailed(f"response contained no text: {e}") from e
        if not text:
            raise GenerationFailed("response contained no text")
        return text

    async def _generate_json(self, prompt: str, schema: dict[str, Any]) -> Any:
        text = await self._generate(
            self.client,
            prompt,
            {"response_mime_type": "application/json", "response_schema": schema},
        )
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise GenerationFailed(f"malformed JSON in response: {e.msg}") from e

    @staticmethod
    def _validate(adapter: TypeAdapter, raw: Any, what: str) -> list[Any]:
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            raise GenerationFailed(f"{what} did not match the expected shape ({e.error_count()} errors)") from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def generate_initial_path(self, topic: str) -> list[Module]:
        """Generate the ordered module list for a topic."""
        logger.info(f"Generating learning path for topic {topic!r}")
        raw = await self._generate_json(build_learning_path_prompt(topic), LEARNING_PATH_SCHEMA)
        modules = self._validate(_MODULE_LIST, raw, "learning path")
        if not modules:
            raise GenerationFailed("generator returned no modules")

        logger.info(f"Generated {len(modules)} modules for {topic!r}")
        return modules

    async def generate_module_detail(self, module_title: str, topic: str) -> list[SubModule]:
        """Generate the sub-modules of one module."""
        logger.info(f"Generating detail for module {module_title!r} ({topic!r})")
        raw = await self._generate_json(
            build_module_detail_prompt(module_title, topic),
            MODULE_DETAIL_SCHEMA,
        )
        return self._validate(_SUB_MODULE_LIST, raw, "module detail")

    async def generate_exercises(self, content: str) -> list[Exercise]:
        """Generate an exercise set from sub-module content."""
        raw = await self._generate_json(build_exercise_prompt(content), EXERCISE_LIST_SCHEMA)
        if isinstance(raw, list):
            raw = [tag_exercise(item) for item in raw]
        return self._validate(_EXERCISE_LIST, raw, "exercise set")

    async def chat_reply(self, history: Sequence[ChatMessage], message: str, context: str) -> str:
        """Answer a learner question using only the given context."""
        contents = [
            {
                "role": "model" if turn.role == ChatRole.ASSISTANT else "user",
                "parts": [turn.text],
            }
            for turn in history
        ]
        contents.append({"role": "user", "parts": [message]})

        # The instruction carries the sub-module, so the chat model is built per call
        model = self._build_model(self.chat_model, system_instruction=build_assistant_instruction(context))
        return await self._generate(model, contents, {"max_output_tokens": self.max_output_tokens})


class UnavailableGenerator:
    """Stand-in used when no Gemini API key is configured.

    Stored sessions can still be listed, opened and graded; anything that
    needs new content fails with GenerationFailed.
    """

    reason = "no Gemini API key configured (set GEMINI_API_KEY)"

    async def generate_initial_path(self, topic: str) -> list[Module]:
        raise GenerationFailed(self.reason)

    async def generate_module_detail(self, module_title: str, topic: str) -> list[SubModule]:
        raise GenerationFailed(self.reason)

    async def generate_exercises(self, content: str) -> list[Exercise]:
        raise GenerationFailed(self.reason)

    async def chat_reply(self, history: Sequence[ChatMessage], message: str, context: str) -> str:
        raise GenerationFailed(self.reason)


def create_generator(settings: Settings | None = None) -> ContentGenerator:
    """Build the Gemini client, or a stand-in if it is not configured."""
    settings = settings or get_settings()
    if not settings.has_ai_configured():
        logger.warning("Gemini is not configured; content generation is disabled")
        return UnavailableGenerator()
    return GeminiContentGenerator(api_key=settings.gemini_api_key)
