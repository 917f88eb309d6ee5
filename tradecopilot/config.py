"""
Configuration management for TradeCopilot.

Loads settings from config.yaml and environment variables.
Business logic receives an immutable CopilotConfig built from these,
it never reads the environment itself.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_FILE = PROJECT_ROOT / "config.yaml"
DATA_DIR = PROJECT_ROOT / "data"

DATA_DIR.mkdir(exist_ok=True)


def load_config() -> dict[str, Any]:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "r") as f:
            return yaml.safe_load(f) or get_default_config()
    return get_default_config()


def get_default_config() -> dict[str, Any]:
    """Return default configuration if config.yaml doesn't exist."""
    return {
        "llm": {
            "vision_model": "gpt-4o",
            "text_model": "gpt-4o-mini",
            "max_tokens_analysis": 1500,
            "max_tokens_chat": 500,
            "temperature": 0.7,
            "max_retries": 0,
            "retry_statuses": [429, 502, 503, 504],
            "retry_backoff_seconds": 1.0,
        },
        "coach": {
            "memory_limit": 5,
            "history_limit": 10,
            "disclaimer": "always",
        },
        "chat": {
            "max_attempts": 3,
            "retry_delay_seconds": 1.0,
        },
    }


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to YAML file."""
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


class Settings:
    """Application settings singleton."""

    _instance = None
    _config: dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._config = load_config()
        return cls._instance

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = load_config()

    @property
    def vision_model(self) -> str:
        return os.getenv("LLM_VISION_MODEL") or self.get("llm.vision_model", "gpt-4o")

    @property
    def text_model(self) -> str:
        return os.getenv("LLM_TEXT_MODEL") or self.get("llm.text_model", "gpt-4o-mini")

    @property
    def max_tokens_analysis(self) -> int:
        return self.get("llm.max_tokens_analysis", 1500)

    @property
    def max_tokens_chat(self) -> int:
        return self.get("llm.max_tokens_chat", 500)

    @property
    def temperature(self) -> float:
        return self.get("llm.temperature", 0.7)

    @property
    def max_retries(self) -> int:
        return self.get("llm.max_retries", 0)

    @property
    def retry_statuses(self) -> list[int]:
        return self.get("llm.retry_statuses", [429, 502, 503, 504])

    @property
    def retry_backoff_seconds(self) -> float:
        return self.get("llm.retry_backoff_seconds", 1.0)

    @property
    def memory_limit(self) -> int:
        return self.get("coach.memory_limit", 5)

    @property
    def history_limit(self) -> int:
        return self.get("coach.history_limit", 10)

    @property
    def disclaimer_policy(self) -> str:
        return self.get("coach.disclaimer", "always")

    @property
    def chat_max_attempts(self) -> int:
        return self.get("chat.max_attempts", 3)

    @property
    def chat_retry_delay_seconds(self) -> float:
        return self.get("chat.retry_delay_seconds", 1.0)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-notation key."""
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default


# Global settings instance
settings = Settings()


@dataclass(frozen=True)
class CopilotConfig:
    """
    Explicit configuration for the analysis orchestrator.

    Built once at startup (see load_copilot_config) and injected, so tests
    can construct one directly without touching the environment.
    """

    api_key: str | None = None
    base_url: str | None = None
    vision_model: str = "gpt-4o"
    text_model: str = "gpt-4o-mini"
    max_tokens_analysis: int = 1500
    max_tokens_chat: int = 500
    temperature: float = 0.7
    max_retries: int = 0
    retry_statuses: tuple[int, ...] = (429, 502, 503, 504)
    retry_backoff_seconds: float = 1.0
    memory_limit: int = 5
    history_limit: int = 10
    disclaimer_policy: str = "always"


def load_copilot_config() -> CopilotConfig:
    """Build the orchestrator configuration from config.yaml and the environment."""
    return CopilotConfig(
        api_key=get_llm_api_key(),
        base_url=get_llm_base_url(),
        vision_model=settings.vision_model,
        text_model=settings.text_model,
        max_tokens_analysis=settings.max_tokens_analysis,
        max_tokens_chat=settings.max_tokens_chat,
        temperature=settings.temperature,
        max_retries=settings.max_retries,
        retry_statuses=tuple(settings.retry_statuses),
        retry_backoff_seconds=settings.retry_backoff_seconds,
        memory_limit=settings.memory_limit,
        history_limit=settings.history_limit,
        disclaimer_policy=settings.disclaimer_policy,
    )


# Environment variable helpers
def get_llm_api_key() -> str | None:
    """
    Get LLM API key.

    No default/fallback key is provided. OPENAI_API_KEY is accepted as an
    alternate name.
    """
    key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
    key = key.strip() if key else None
    return key or None


def get_llm_base_url() -> str:
    """Get LLM base URL (OpenAI or any OpenAI-compatible proxy)."""
    return os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")


def get_database_url() -> str:
    """Get local database URL from environment or default."""
    default_db = f"sqlite:///{DATA_DIR}/tradecopilot.db"
    return os.getenv("DATABASE_URL", default_db)


def get_local_user_id() -> str:
    """User id used for requests when Supabase Auth is not configured."""
    return os.getenv("LOCAL_USER_ID", "").strip() or "local-user"
