"""Translation provider abstractions."""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, List, Sequence

import tiktoken

from .configuration import LLMProviderConfig, SubtransConfig
from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)

DEFAULT_PROMPT_TEMPLATE = """Translate the following subtitle texts to $TARGET_LANG$. Return a JSON object with a "translations" array containing the translated texts in the same order:

Return format:
{
  "translations": ["translation1", "translation2", ...]
}

Subtitle texts:
$SUBTITLES$
"""

TRANSLATION_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "translations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["translations"],
    "additionalProperties": False,
}

# Leave headroom for the prompt template and the response framing.
BATCH_BUDGET_RATIO = 0.95


class TranslationProvider(ABC):
    """Capability consumed by the pipeline: translate, measure, and a budget."""

    name = "provider"
    model: str | None = None

    @abstractmethod
    def translate(self, texts: Sequence[str]) -> List[str]:
        """Translate texts, returning the same number of results in order."""

    @abstractmethod
    def measure_length(self, text: str) -> int:
        """Size of a text in the unit used by ``max_batch_length``."""

    @abstractmethod
    def max_batch_length(self) -> int:
        """Largest combined length the provider accepts in one request."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (used for dry runs)."""

    name = "echo"

    def __init__(self, max_length: int = 2000) -> None:
        self.max_length = max_length

    def translate(self, texts: Sequence[str]) -> List[str]:
        return list(texts)

    def measure_length(self, text: str) -> int:
        return len(text)

    def max_batch_length(self) -> int:
        return self.max_length


@lru_cache(maxsize=1)
def _token_encoding() -> Any:
    return tiktoken.get_encoding("cl100k_base")


def token_count(text: str) -> int:
    """Approximate token count.

    Not every model uses cl100k, and counts are not additive across
    concatenation; the figure is only used for batching decisions.
    """

    return len(_token_encoding().encode(text, disallowed_special=()))


def resolve_prompt_template(config: SubtransConfig, prompt_key: str) -> str:
    """Return the configured prompt for ``prompt_key`` or the built-in default."""

    template = config.prompts.get(prompt_key)
    if template is not None:
        return template
    if prompt_key == "default":
        return DEFAULT_PROMPT_TEMPLATE
    raise TranslationProviderConfigurationError(
        f"Prompt '{prompt_key}' not found in configuration."
    )


def render_prompt(template: str, target_language: str, texts: Sequence[str]) -> str:
    payload = json.dumps(list(texts), ensure_ascii=False)
    prompt = template.replace("$TARGET_LANG$", target_language)
    return prompt.replace("$SUBTITLES$", payload)


class LLMTranslationProvider(TranslationProvider):
    """Shared prompt, budget and response handling for LLM-backed providers."""

    def __init__(
        self,
        settings: LLMProviderConfig,
        *,
        target_language: str,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        debug: bool = False,
    ) -> None:
        self.settings = settings
        self.model = settings.model
        self.target_language = target_language
        self.prompt_template = prompt_template
        self.debug = debug
        self._client = self._build_client()

    def measure_length(self, text: str) -> int:
        return token_count(text)

    def max_batch_length(self) -> int:
        return int(self.settings.max_tokens * BATCH_BUDGET_RATIO)

    def translate(self, texts: Sequence[str]) -> List[str]:
        if not texts:
            return []

        prompt = render_prompt(self.prompt_template, self.target_language, texts)
        self._log_debug("provider.request.prompt", prompt)

        content = self._invoke_model(prompt)
        self._log_debug("provider.response.content", content)

        translations = self._parse_translations(content)
        if len(translations) != len(texts):
            raise TranslationProviderError(
                f"Translation count mismatch: got {len(translations)} translations "
                f"for {len(texts)} input texts."
            )
        return translations

    @abstractmethod
    def _build_client(self) -> Any:
        """Create the SDK client used by ``_invoke_model``."""

    @abstractmethod
    def _invoke_model(self, prompt: str) -> str:
        """Send the prompt and return the raw response text."""

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
        print(f"[subtrans][provider-debug] {label}:\n{message}", file=sys.stderr)

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped

        # Drop opening fence and optional language hint.
        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _parse_translations(self, content: str) -> List[str]:
        try:
            payload = json.loads(self._strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

        translations = payload.get("translations") if isinstance(payload, dict) else None
        if not isinstance(translations, list):
            raise TranslationProviderError(
                "Translation provider response malformed: could not find translations list."
            )
        if not all(isinstance(item, str) for item in translations):
            raise TranslationProviderError(
                "Translation provider response malformed: translations must be strings."
            )
        return translations


class OpenAICompatibleTranslationProvider(LLMTranslationProvider):
    """Chat Completions provider for OpenAI and OpenAI-compatible endpoints."""

    name = "openai"

    def _build_client(self) -> Any:
        try:
            from openai import OpenAI
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        return OpenAI(api_key=self.settings.api_key, base_url=self.settings.api_url or None)

    def _response_format(self) -> dict[str, Any]:
        if self.settings.structure_output == "json_object":
            return {"type": "json_object"}
        return {
            "type": "json_schema",
            "json_schema": {
                "name": "translation_response",
                "schema": TRANSLATION_RESPONSE_SCHEMA,
                "strict": True,
            },
        }

    def _invoke_model(self, prompt: str) -> str:
        try:
            completion = self._client.chat.completions.create(
                model=self.settings.model,
                messages=[{"role": "user", "content": prompt}],
                response_format=self._response_format(),
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Failed to get completion from OpenAI API: {exc}"
            ) from exc

        choices = getattr(completion, "choices", None) or []
        if not choices:
            raise TranslationProviderError(
                "No completion choices returned from OpenAI API."
            )
        content = getattr(choices[0].message, "content", None)
        if not content:
            raise TranslationProviderError("Empty response from OpenAI API.")
        return str(content)


class GeminiTranslationProvider(LLMTranslationProvider):
    """Provider backed by the Google Gen AI SDK."""

    name = "gemini"

    def _build_client(self) -> Any:
        try:
            from google import genai
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "Google Gen AI SDK not installed. Install with `pip install google-genai`."
            ) from exc

        try:
            return genai.Client(api_key=self.settings.api_key)
        except Exception as exc:
            raise TranslationProviderConfigurationError(
                f"Failed to initialise Gemini client: {exc}"
            ) from exc

    def _generate_config(self) -> Any:
        from google.genai import types

        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "translations": types.Schema(
                        type=types.Type.ARRAY,
                        items=types.Schema(type=types.Type.STRING),
                    ),
                },
                required=["translations"],
            ),
        )

    def _invoke_model(self, prompt: str) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.settings.model,
                contents=prompt,
                config=self._generate_config(),
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Failed to get response from Gemini API: {exc}"
            ) from exc

        if not getattr(response, "candidates", None):
            raise TranslationProviderError(
                "No completion choices returned from Gemini API."
            )
        text = getattr(response, "text", None)
        if not text:
            raise TranslationProviderError("Empty response from Gemini API.")
        return str(text)


PROVIDER_TYPES = {
    "openai": OpenAICompatibleTranslationProvider,
    "gemini": GeminiTranslationProvider,
}


def build_provider(
    config: SubtransConfig,
    *,
    llm_name: str = "default",
    prompt_key: str = "default",
    dry_run: bool = False,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create the provider selected by configuration."""

    settings = config.get_llm(llm_name)
    if dry_run:
        return EchoTranslationProvider(
            max_length=int(settings.max_tokens * BATCH_BUDGET_RATIO)
        )

    if not config.target_lang:
        raise TranslationProviderConfigurationError(
            "Target language is not set. Use --target-lang or set target_lang in the configuration."
        )
    provider_cls = PROVIDER_TYPES.get(settings.api)
    if provider_cls is None:
        raise TranslationProviderConfigurationError(
            f"Unsupported API type '{settings.api}'."
        )
    return provider_cls(
        settings,
        target_language=config.target_lang,
        prompt_template=resolve_prompt_template(config, prompt_key),
        debug=debug,
    )
