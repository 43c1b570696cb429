"""YAML configuration loader for subtrans."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .errors import ConfigurationError, TranslationProviderConfigurationError

APP_NAME = "subtrans"
LOCAL_CONFIG_NAME = ".env.yaml"
DEFAULT_MAX_TOKENS = 128000

ENV_OVERRIDES = {
    "SUBTRANS_DEFAULT_LLM": "default_llm",
    "SUBTRANS_TARGET_LANG": "target_lang",
    "SUBTRANS_PROVIDER_DEBUG": "provider_debug",
}


class LLMProviderConfig(BaseModel):
    """Connection settings for one translation backend."""

    model_config = ConfigDict(extra="forbid")

    api: Literal["openai", "gemini"]
    api_key: Optional[str] = Field(default=None, repr=False)
    api_key_env: Optional[str] = None
    api_url: Optional[str] = None
    model: str = ""
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=0)
    structure_output: Literal["json_object", "json_schema"] = "json_schema"

    @field_validator("api", "structure_output", mode="before")
    @classmethod
    def _normalise_choice(cls, value: Any, info: ValidationInfo) -> Any:
        if not value and info.field_name == "structure_output":
            return "json_schema"
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _default_max_tokens(cls, value: Any) -> Any:
        return value or DEFAULT_MAX_TOKENS

    @model_validator(mode="after")
    def _require_credentials(self) -> "LLMProviderConfig":
        if not self.api_key:
            if self.api_key_env:
                raise ValueError(
                    f"api_key is required (environment variable {self.api_key_env} is not set)"
                )
            raise ValueError("api_key is required")
        if not self.model:
            raise ValueError("model is required")
        return self


class SubtransConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="forbid")

    default_llm: str = ""
    llms: Dict[str, LLMProviderConfig] = Field(default_factory=dict)
    target_lang: str = ""
    prompts: Dict[str, str] = Field(default_factory=dict)
    provider_debug: bool = False

    @field_validator("prompts", mode="before")
    @classmethod
    def _empty_prompts(cls, value: Any) -> Any:
        return value or {}

    @model_validator(mode="after")
    def _check_default_llm(self) -> "SubtransConfig":
        if not self.llms:
            raise ValueError("at least one LLM provider is required")
        if not self.default_llm:
            raise ValueError("default_llm is required")
        if self.default_llm not in self.llms:
            raise ValueError(
                f"default_llm '{self.default_llm}' not found in llms"
            )
        return self

    def get_llm(self, name: str = "default") -> LLMProviderConfig:
        """Return a provider by name; ``default`` selects ``default_llm``."""

        lookup = self.default_llm if name == "default" else name
        provider = self.llms.get(lookup)
        if provider is None:
            raise TranslationProviderConfigurationError(
                f"LLM provider '{lookup}' not found in configuration."
            )
        return provider


def find_config(
    path: Path | str | None = None,
    *,
    app_dir: Path | None = None,
    home_dir: Path | None = None,
) -> Path:
    """Locate the configuration file.

    Checked in order: the explicit ``path``, ``./.env.yaml`` and
    ``~/.config/subtrans/config.yaml``.
    """

    candidates = []
    if path:
        candidates.append(Path(path).expanduser())
    candidates.append((app_dir or Path.cwd()) / LOCAL_CONFIG_NAME)
    candidates.append((home_dir or Path.home()) / ".config" / APP_NAME / "config.yaml")

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        "No configuration file found. Pass -c, or create ./.env.yaml or "
        f"~/.config/{APP_NAME}/config.yaml."
    )


def load_config(
    path: Path | str | None = None,
    *,
    app_dir: Path | None = None,
    home_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SubtransConfig:
    """Load, merge environment overrides into, and validate the configuration."""

    base_dir = app_dir or Path.cwd()
    config_path = find_config(path, app_dir=base_dir, home_dir=home_dir)
    try:
        parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(
            f"Configuration file {config_path} could not be read: {exc}"
        ) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Configuration file {config_path} is not valid YAML: {exc}"
        ) from exc

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, Mapping):
        raise ConfigurationError(
            f"Invalid configuration file {config_path}: expected a mapping at the root."
        )

    env = _collect_environment(base_dir, environ)
    data = _merge_env_sources(dict(parsed), env)
    try:
        return SubtransConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_errors(exc.errors())) from exc


def _collect_environment(
    app_dir: Path,
    environ: Mapping[str, str] | None,
) -> Dict[str, str]:
    """Merge ``.env`` values with the process environment (process wins)."""

    values: Dict[str, str] = {}
    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        values.update(
            {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        )
    process = os.environ if environ is None else environ
    values.update({k: v for k, v in process.items() if isinstance(v, str)})
    return values


def _merge_env_sources(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    for variable, key in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            data[key] = value

    llms = data.get("llms")
    if isinstance(llms, Mapping):
        resolved: Dict[str, Any] = {}
        for name, provider in llms.items():
            if isinstance(provider, Mapping):
                provider = dict(provider)
                key_variable = provider.get("api_key_env")
                if not provider.get("api_key") and key_variable:
                    provider["api_key"] = env.get(key_variable)
            resolved[name] = provider
        data["llms"] = resolved
    return data


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part != "")
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)
