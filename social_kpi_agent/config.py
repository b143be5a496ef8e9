from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def load_yaml(file_path: str | Path) -> dict[str, Any]:
    """Return the YAML mapping at ``file_path``; a missing or empty file is ``{}``."""
    path = Path(file_path)
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    return payload


def _yaml_str(section: dict[str, Any], key: str, default: str) -> str:
    value = section.get(key)
    if value is None:
        return default
    return str(value).strip() or default


@dataclass(frozen=True)
class AgentConfig:
    config_path: str
    db_path: str
    output_dir: str

    use_llm_narrative: bool
    llm_base_url: str
    llm_api_key_env: str
    llm_api_key: str
    llm_model: str
    llm_temperature: float
    llm_max_tokens: int
    llm_timeout_sec: int
    llm_max_retries: int

    @classmethod
    def load(cls, config_path: str | None = None) -> "AgentConfig":
        """Build the config from environment variables layered over the YAML file.

        Precedence: environment > ``api:`` section of the YAML document > defaults.
        """
        path = config_path or _env("KPI_CONFIG_PATH", "config.yaml")
        document = load_yaml(path)
        api = document.get("api") or {}
        if not isinstance(api, dict):
            raise ValueError(f"'api' section in {path} must be a mapping")

        api_key_env = _env("LLM_API_KEY_ENV", _yaml_str(api, "api_key_env", "OPENAI_API_KEY"))
        return cls(
            config_path=str(path),
            db_path=_env("KPI_DB_PATH", "analytics.db"),
            output_dir=_env("KPI_OUTPUT_DIR", "."),
            use_llm_narrative=_env_bool("USE_LLM_NARRATIVE", True),
            llm_base_url=_env(
                "LLM_BASE_URL", _yaml_str(api, "base_url", "https://api.openai.com/v1")
            ).rstrip("/"),
            llm_api_key_env=api_key_env,
            llm_api_key=_env(api_key_env),
            llm_model=_env("LLM_MODEL", _yaml_str(api, "model", "gpt-4o-mini")),
            llm_temperature=_env_float("LLM_TEMPERATURE", 0.7),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", 500),
            llm_timeout_sec=_env_int("LLM_TIMEOUT_SEC", 30),
            llm_max_retries=_env_int("LLM_MAX_RETRIES", 0),
        )

    @property
    def llm_enabled(self) -> bool:
        return bool(
            self.use_llm_narrative
            and self.llm_base_url
            and self.llm_api_key
            and self.llm_model
        )
