"""Configuration loading, validation and persistence for chatmux."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
import yaml

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "chatmux"
CONFIG_PATH = CONFIG_DIR / "config.yaml"
DATABASE_PATH = CONFIG_DIR / "chatmux.db"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

KNOWN_CREDENTIAL_NAMES = (
    "groq",
    "openai",
    "anthropic",
    "gemini",
    "deepseek",
    "tavily",
    "ollama",
)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. You aim to give accurate, helpful, "
    "and concise responses."
)


def _require_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class SystemPrompt(BaseModel):
    """A named system prompt the user can switch to."""

    title: str
    content: str

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _require_string(value)

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_content(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("System prompt content must be a string.")
        return value.strip()


class ThemeConfig(BaseModel):
    name: str = "default"


class SettingsConfig(BaseModel):
    """User-facing settings block."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = "User"
    conversation_retention_days: int = Field(
        default=30,
        ge=0,
        le=36_500,
        validation_alias=AliasChoices(
            "conversation_retention_days", "conversationretention"
        ),
    )
    output_glamour: bool = Field(
        default=True,
        validation_alias=AliasChoices("output_glamour", "outputglamour"),
    )
    theme: ThemeConfig = ThemeConfig()
    # Number code blocks of a reloaded conversation instead of leaving them
    # unnumbered.
    number_loaded_code_blocks: bool = False

    @field_validator("username", mode="before")
    @classmethod
    def _validate_username(cls, value: Any) -> str:
        if value is None:
            return "User"
        return _require_string(value)

    @field_validator("theme", mode="before")
    @classmethod
    def _upgrade_string_theme(cls, value: Any) -> Any:
        # Older files stored the theme as a bare name.
        if isinstance(value, str):
            return {"name": value.strip() or "default"}
        return value


class AuxiliaryConfig(BaseModel):
    """The cheap model used for title generation and query enhancement."""

    provider: str = "groq"
    title_model: str = "llama-3.3-70b-versatile"
    enhance_model: str = "llama-3.3-70b-versatile"

    @field_validator("provider", "title_model", "enhance_model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _require_string(value)


class HttpConfig(BaseModel):
    """Timeouts applied to every outbound request."""

    timeout_seconds: float = Field(default=60.0, gt=0, le=3600)
    enhancer_timeout_seconds: float = Field(default=15.0, gt=0, le=600)
    location_timeout_seconds: float = Field(default=10.0, gt=0, le=600)


class ProviderOverride(BaseModel):
    """Per-provider endpoint overrides."""

    base_url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    extra_params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("base_url must be a string.")
        normalized = value.strip().rstrip("/")
        if normalized and not normalized.startswith(("http://", "https://")):
            raise ValueError("base_url must use http or https scheme.")
        return normalized or None


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/chatmux/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _require_string(value)


class ChatmuxConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(populate_by_name=True)

    api_keys: dict[str, str] = Field(
        default_factory=lambda: {name: "" for name in KNOWN_CREDENTIAL_NAMES}
    )
    current_provider: str = ""
    current_model: str = ""
    current_system_prompt: str = ""
    system_prompts: list[SystemPrompt] = Field(
        default_factory=lambda: [
            SystemPrompt(title="General", content=DEFAULT_SYSTEM_PROMPT)
        ]
    )
    settings: SettingsConfig = SettingsConfig()
    auxiliary: AuxiliaryConfig = AuxiliaryConfig()
    http: HttpConfig = HttpConfig()
    providers: dict[str, ProviderOverride] = Field(default_factory=dict)
    logging: LoggingConfig = LoggingConfig()

    @field_validator("api_keys", mode="before")
    @classmethod
    def _normalize_api_keys(cls, value: Any) -> dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("api_keys must be a mapping of provider -> key.")
        keys: dict[str, str] = {}
        for name, key in value.items():
            if not isinstance(name, str) or not name.strip():
                raise ValueError("api_keys names must be non-empty strings.")
            if key is None:
                key = ""
            if not isinstance(key, str):
                raise ValueError(f"api_keys.{name} must be a string.")
            keys[name.strip().lower()] = key.strip()
        return keys

    @field_validator("current_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("current_provider must be a string.")
        return value.strip().lower()

    @field_validator("current_model", "current_system_prompt", mode="before")
    @classmethod
    def _normalize_optional_string(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @model_validator(mode="after")
    def _default_system_prompt(self) -> ChatmuxConfig:
        if not self.current_system_prompt and self.system_prompts:
            self.current_system_prompt = self.system_prompts[0].content
        return self

    def credential_for(self, provider: str) -> str:
        """Return the stored credential for ``provider`` (empty when unset)."""
        return self.api_keys.get(provider.strip().lower(), "")

    def validate_selection(self) -> list[str]:
        """Report missing selections the UI should prompt for."""
        problems: list[str] = []
        if not self.current_provider:
            problems.append("No provider selected.")
        if not self.current_model:
            problems.append("No model selected.")
        return problems


DEFAULT_CONFIG: dict[str, Any] = ChatmuxConfig().model_dump(mode="json")


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def is_first_run(config_path: Path | None = None) -> bool:
    """A first run is one where no configuration file exists yet."""
    return not (config_path or CONFIG_PATH).exists()


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _defaults_for_merge() -> dict[str, Any]:
    data = deepcopy(DEFAULT_CONFIG)
    # Lists replace wholesale during merge; an explicit user list wins and an
    # absent one falls back to the model default.
    data.pop("system_prompts", None)
    # Settings keys are accepted under two spellings; let the file decide.
    data["settings"].pop("conversation_retention_days", None)
    data["settings"].pop("output_glamour", None)
    return data


def load_config(config_path: Path | None = None) -> ChatmuxConfig:
    """Load configuration from YAML, merge with defaults, and validate.

    A missing file yields the defaults. Malformed YAML or invalid values
    raise :class:`ConfigValidationError`, which the entry point treats as
    fatal.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            loaded = yaml.safe_load(target_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigValidationError(
                f"Unable to read configuration at {target_path}: {exc}"
            ) from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigValidationError(
                f"Configuration at {target_path} must be a mapping."
            )
        raw_data = loaded

    merged = _deep_merge(_defaults_for_merge(), raw_data)
    try:
        config = ChatmuxConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid configuration: {exc}") from exc

    LOGGER.info(
        "config.loaded",
        extra={
            "event": "config.loaded",
            "path": str(target_path),
            "provider": config.current_provider,
            "model": config.current_model,
        },
    )
    return config


def save_config(config: ChatmuxConfig, config_path: Path | None = None) -> Path:
    """Write ``config`` as YAML with private permissions and return the path."""
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)
    payload = config.model_dump(mode="json", exclude_none=True)
    try:
        target_path.write_text(
            yaml.safe_dump(payload, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
    except OSError as exc:
        raise ConfigValidationError(
            f"Unable to write configuration to {target_path}: {exc}"
        ) from exc
    _enforce_private_permissions(target_path)
    LOGGER.info(
        "config.saved",
        extra={"event": "config.saved", "path": str(target_path)},
    )
    return target_path
