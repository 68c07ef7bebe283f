"""Text-generation provider adapters.

Responsibilities:
- Build provider-specific request payloads for story and enhancement prompts.
- Extract generated text from provider response shapes.
- Provide the offline template adapter used as the last chain candidate.
"""

from __future__ import annotations

from typing import Any

from ..models.datatypes import PromptPurpose, ProviderResult, TextPrompt
from ..text.templates import template_enhancement, template_story
from .base import HttpProviderAdapter, ProviderKind
from .http_client import ProviderHttpClient

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
GOOGLE_GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
HUGGINGFACE_URL = "https://router.huggingface.co/{model}"

_GOOGLE_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class _TextAdapterBase(HttpProviderAdapter[TextPrompt]):
    """Shared response-length validation for HTTP text adapters."""

    def _invoke(self, request: TextPrompt) -> ProviderResult:
        text = self._generate(request).strip()
        if not text:
            raise self.malformed("returned empty text.")
        if len(text) < request.min_chars:
            raise self.malformed(
                f"returned insufficient content ({len(text)} < {request.min_chars} chars)."
            )
        return ProviderResult.ok_text(self.provider_id, text)

    def _generate(self, request: TextPrompt) -> str:
        raise NotImplementedError


class OpenAITextAdapter(_TextAdapterBase):
    """OpenAI chat-completions adapter."""

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        model: str = "gpt-3.5-turbo",
    ) -> None:
        super().__init__(provider_id=ProviderKind.OPENAI.value, api_key=api_key, http_client=http_client)
        self.model = model

    def _generate(self, request: TextPrompt) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.purpose is PromptPurpose.STORY:
            payload.update({"top_p": 0.9, "frequency_penalty": 0.1, "presence_penalty": 0.1})
        response = self.http_client.post_json_payload(
            OPENAI_CHAT_URL,
            payload=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self._extract_message_text(response)

    def _extract_message_text(self, response: Any) -> str:
        """Extract assistant text from a chat-completions payload."""

        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise self.malformed("response is missing `choices[0].message.content`.") from exc
        if isinstance(content, list):
            content = "".join(
                str(part.get("text", "")) for part in content if isinstance(part, dict)
            )
        if not isinstance(content, str):
            raise self.malformed("response message content is not text.")
        return content


class GoogleTextAdapter(_TextAdapterBase):
    """Google Generative Language (Gemini) adapter."""

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        model: str = "gemini-1.5-flash",
    ) -> None:
        super().__init__(provider_id=ProviderKind.GOOGLE.value, api_key=api_key, http_client=http_client)
        self.model = model

    def _generate(self, request: TextPrompt) -> str:
        payload: dict[str, Any] = {
            "contents": [{"parts": [{"text": request.user_prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": min(request.max_tokens, 2000),
            },
        }
        if request.purpose is PromptPurpose.STORY:
            payload["safetySettings"] = [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in _GOOGLE_SAFETY_CATEGORIES
            ]
        response = self.http_client.post_json_payload(
            GOOGLE_GENERATE_URL.format(model=self.model),
            payload=payload,
            params={"key": self.api_key},
        )
        try:
            text = response["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise self.malformed("returned empty or malformed candidates.") from exc
        if not isinstance(text, str):
            raise self.malformed("candidate text is not a string.")
        return text


class HuggingFaceTextAdapter(_TextAdapterBase):
    """HuggingFace inference router adapter."""

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        model: str = "microsoft/DialoGPT-large",
    ) -> None:
        super().__init__(
            provider_id=ProviderKind.HUGGINGFACE.value, api_key=api_key, http_client=http_client
        )
        self.model = model

    def _generate(self, request: TextPrompt) -> str:
        payload = {
            "inputs": request.user_prompt,
            "parameters": {
                "max_length": min(request.max_tokens * 2, 2000),
                "temperature": request.temperature,
                "do_sample": True,
                "top_p": 0.9,
                "repetition_penalty": 1.1,
                "return_full_text": False,
            },
        }
        response = self.http_client.post_json_payload(
            HUGGINGFACE_URL.format(model=self.model),
            payload=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if isinstance(response, list) and response:
            response = response[0]
        if isinstance(response, dict):
            text = response.get("generated_text")
            if isinstance(text, str):
                return text
        raise self.malformed("response is missing `generated_text`.")


class TemplateTextAdapter:
    """Offline adapter rendering deterministic genre templates."""

    def __init__(self) -> None:
        self.provider_id = ProviderKind.TEMPLATE.value

    def call(self, request: TextPrompt) -> ProviderResult:
        """Render the template story or enhancement for the request."""

        generation = request.generation
        if request.purpose is PromptPurpose.ENHANCE:
            text = template_enhancement(generation.subject_text, generation.genre)
        else:
            text = template_story(generation.subject_text, generation.genre, generation.length)
        return ProviderResult.ok_text(self.provider_id, text)
