"""Configuration for the LLM Council."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .config_loader import (
    get_chairman_model,
    get_length_budgets,
    get_project_root,
    get_prompt_overrides,
    get_timeout_config,
    load_config,
)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
# A council needs at least two voices; config can raise this, never lower it.
MIN_COUNCIL_SIZE = 2


@dataclass
class CouncilConfig:
    """Process-wide settings, built once at startup and passed to each component."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    app_referer: str = "http://localhost:5173"
    app_title: str = "AI Group Chat"
    default_chairman: str = "openai/gpt-4o-mini"
    stage1_max_length: Optional[int] = 2000
    stage2_max_length: Optional[int] = 2000
    stage3_max_length: Optional[int] = 4000
    request_timeout: float = 120.0
    connect_timeout: float = 30.0
    history_limit: int = 10
    min_models: int = MIN_COUNCIL_SIZE
    max_concurrency: Optional[int] = None
    default_user_id: str = "00000000-0000-0000-0000-000000000001"
    data_dir: Path = Path("data/conversations")
    ranking_template: Optional[str] = None
    chairman_template: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CouncilConfig":
        """Build the config from config/council.yaml and the process environment."""
        load_dotenv()
        raw = load_config()
        budgets = get_length_budgets()
        timeouts = get_timeout_config()
        prompts = get_prompt_overrides()

        data_dir = os.getenv("COUNCIL_DATA_DIR") or raw.get("data_dir")
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
            base_url=os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL),
            app_referer=os.getenv("APP_REFERER", "http://localhost:5173"),
            app_title=os.getenv("APP_TITLE", "AI Group Chat"),
            default_chairman=get_chairman_model(),
            stage1_max_length=budgets["stage1"],
            stage2_max_length=budgets["stage2"],
            stage3_max_length=budgets["stage3"],
            request_timeout=float(timeouts["request_timeout"]),
            connect_timeout=float(timeouts["connection_timeout"]),
            history_limit=int(raw.get("history_limit", 10)),
            min_models=max(MIN_COUNCIL_SIZE, int(raw.get("min_models", MIN_COUNCIL_SIZE))),
            max_concurrency=raw.get("max_concurrency"),
            default_user_id=raw.get("default_user_id", cls.default_user_id),
            data_dir=Path(data_dir) if data_dir else get_project_root() / "data" / "conversations",
            ranking_template=prompts.get("ranking"),
            chairman_template=prompts.get("chairman"),
        )
