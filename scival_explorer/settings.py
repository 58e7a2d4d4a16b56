# scival_explorer/settings.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """
    Read-only process configuration. Built once at startup (see create_app)
    and passed by reference; never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    # Elsevier credentials (forwarded as headers, never logged)
    api_key: str = ""
    inst_token: str = ""
    auth_token: Optional[str] = None
    base_url: str = "https://api.elsevier.com"

    # Server
    host: str = "127.0.0.1"
    port: int = Field(3000, ge=1, le=65535)
    log_level: str = "INFO"

    # Upstream discipline
    upstream_timeout_s: float = Field(15.0, gt=0)
    request_budget_s: Optional[float] = Field(30.0, gt=0)

    # Views
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    author_profile_enabled: bool = True
    search_result_count: int = Field(20, ge=1, le=200)
    recent_docs_count: int = Field(5, ge=1, le=200)
    institution_topics_limit: int = Field(5, ge=1, le=100)
    year_range: str = "5yrsAndCurrent"

    @classmethod
    def from_env(cls) -> "Settings":
        budget = _env("REQUEST_BUDGET_S", "30")
        return cls(
            api_key=_env("ELSEVIER_API_KEY"),
            inst_token=_env("ELSEVIER_INST_TOKEN"),
            auth_token=_env("ELSEVIER_AUTH_TOKEN") or None,
            base_url=_env("ELSEVIER_BASE_URL", "https://api.elsevier.com"),
            host=_env("HOST", "127.0.0.1"),
            port=_env("PORT", "3000"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            upstream_timeout_s=_env("UPSTREAM_TIMEOUT_S", "15"),
            # REQUEST_BUDGET_S=0 disables the per-page deadline
            request_budget_s=None if budget.strip() in ("", "0", "0.0") else budget,
            templates_dir=Path(_env("TEMPLATES_DIR") or DEFAULT_TEMPLATES_DIR),
            author_profile_enabled=_env_flag("AUTHOR_PROFILE_ENABLED", True),
            search_result_count=_env("SEARCH_RESULT_COUNT", "20"),
            recent_docs_count=_env("RECENT_DOCS_COUNT", "5"),
            institution_topics_limit=_env("INSTITUTION_TOPICS_LIMIT", "5"),
            year_range=_env("YEAR_RANGE", "5yrsAndCurrent"),
        )
