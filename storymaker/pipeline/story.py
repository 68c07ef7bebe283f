"""Story generation stage.

Responsibilities:
- Turn a `GenerationRequest` into a persisted-ready `StoryRecord`.
- Fall back to the deterministic template story when every provider fails.
- Enhance story prompts with a provider chain and a template fallback.
"""

from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import Callable

from ..errors import AllProvidersFailedError
from ..models.datatypes import GenerationRequest, PromptPurpose, StoryRecord, TextPrompt
from ..providers.base import ProviderKind
from ..telemetry.logger import RunLogger
from ..text.templates import (
    ENHANCE_SYSTEM_PROMPT,
    STORY_SYSTEM_PROMPT,
    enhancement_prompt,
    story_prompt,
    story_title,
    template_enhancement,
    template_story,
    word_count,
)
from .fallback import FallbackChain

WORDS_PER_MINUTE = 200
ENHANCEMENT_MIN_GROWTH = 1.5


class StoryGenerator:
    """Generate stories and enhanced prompts through a text provider chain."""

    def __init__(
        self,
        chain: FallbackChain[TextPrompt],
        *,
        min_story_chars: int = 100,
        run_logger: RunLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.chain = chain
        self.min_story_chars = min_story_chars
        self.run_logger = run_logger
        self.clock = clock if clock is not None else (lambda: datetime.now(timezone.utc))

    def build_prompt(self, request: GenerationRequest) -> TextPrompt:
        """Build the provider prompt for a story request."""

        return TextPrompt(
            generation=request,
            purpose=PromptPurpose.STORY,
            user_prompt=story_prompt(request.subject_text, request.genre, request.length),
            system_prompt=STORY_SYSTEM_PROMPT,
            max_tokens=min(math.floor(request.length.target_words * 1.5), 4000),
            temperature=0.8,
            min_chars=self.min_story_chars,
        )

    def generate(self, request: GenerationRequest, creator_id: str | None = None) -> StoryRecord:
        """Generate one story record, never failing on provider outages."""

        self._log_start("generate_story", genre=request.genre.value, length=request.length.value)
        try:
            result = self.chain.generate(self.build_prompt(request))
            content = result.text or ""
            provider_id = result.provider_id
        except AllProvidersFailedError:
            if self.run_logger is not None:
                self.run_logger.log_stage_failure("generate_story", "all_providers_failed")
            content = template_story(request.subject_text, request.genre, request.length)
            provider_id = ProviderKind.TEMPLATE.value

        created_at = self.clock()
        words = word_count(content)
        record = StoryRecord(
            id=str(int(created_at.timestamp() * 1000)),
            title=story_title(request.subject_text, request.genre),
            content=content,
            genre=request.genre,
            length=request.length,
            prompt=request.subject_text,
            created_at=created_at.isoformat(),
            word_count=words,
            estimated_reading_minutes=math.ceil(words / WORDS_PER_MINUTE),
            creator_id=creator_id,
            provider_id=provider_id,
            used_fallback=provider_id == ProviderKind.TEMPLATE.value,
        )
        self._log_complete("generate_story", provider=provider_id, words=words)
        return record

    def enhance_prompt(self, request: GenerationRequest) -> tuple[str, str]:
        """Return `(enhanced_prompt, provider_id)` for a story prompt.

        Provider output shorter than 1.5 times the original prompt is
        rejected in favor of the template enhancement.
        """

        self._log_start("enhance_prompt", genre=request.genre.value)
        original = request.subject_text
        prompt = TextPrompt(
            generation=request,
            purpose=PromptPurpose.ENHANCE,
            user_prompt=enhancement_prompt(original, request.genre, request.length),
            system_prompt=ENHANCE_SYSTEM_PROMPT,
            max_tokens=1000,
            temperature=0.7,
            min_chars=math.ceil(len(original) * ENHANCEMENT_MIN_GROWTH),
        )
        try:
            result = self.chain.generate(prompt)
            enhanced, provider_id = result.text or "", result.provider_id
        except AllProvidersFailedError:
            enhanced = template_enhancement(original, request.genre)
            provider_id = ProviderKind.TEMPLATE.value
        self._log_complete("enhance_prompt", provider=provider_id)
        return enhanced, provider_id

    def _log_start(self, stage: str, **context: object) -> None:
        if self.run_logger is not None:
            self.run_logger.log_stage_start(stage, **context)

    def _log_complete(self, stage: str, **context: object) -> None:
        if self.run_logger is not None:
            self.run_logger.log_stage_complete(stage, **context)
