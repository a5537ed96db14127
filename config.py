"""
Central configuration for the procurement engine.

All paths, thresholds, and model settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. config/procurement_settings.json  (admin-editable, persisted)
  2. Environment variables
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH  = DEFAULT_DATA_DIR / "procurement.db"


@dataclass
class Config:
    # --- Analysis provider (OpenAI-compatible API) ---
    # Works with Ollama, OpenAI, Groq, Azure OpenAI, or any OpenAI-compatible backend.
    #
    # Ollama (default):   LLM_BASE_URL=http://localhost:11434/v1   LLM_API_KEY=ollama
    # OpenAI:             LLM_BASE_URL=https://api.openai.com/v1   LLM_API_KEY=sk-...
    llm_model: str = field(
        default_factory=lambda: os.getenv("LLM_MODEL", "llama3.2")
    )
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:11434/v1")
    )
    llm_api_key: str = field(
        default_factory=lambda: os.getenv("LLM_API_KEY", "ollama")
    )
    provider_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("PROVIDER_TIMEOUT", "60"))
    )
    # Each attempt is bounded by the timeout; a timeout is never retried.
    provider_max_attempts: int = 3

    # --- Storage ---
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    )
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Replenishment policy ---
    # A product is "at risk" when stock_level <= at_risk_multiplier * reorder_point
    at_risk_multiplier: int = field(
        default_factory=lambda: int(os.getenv("AT_RISK_MULTIPLIER", "2"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from procurement_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "procurement_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "llm_model":                str,
            "provider_timeout_seconds": float,
            "provider_max_attempts":    int,
            "at_risk_multiplier":       int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Failed to load procurement_settings.json: %s", exc)

    def ensure_data_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
