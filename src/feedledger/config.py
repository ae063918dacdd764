"""Engine configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_RATE_URL = "https://api.exchangerate-api.com/v4/latest/{base}"


def default_database_path() -> str:
    """Return ~/.feedledger/feedledger.db, creating the directory if needed."""
    db_dir = Path.home() / ".feedledger"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "feedledger.db")


@dataclass(frozen=True)
class EngineConfig:
    """Runtime settings for the ledger engine.

    Every field has a default; ``from_env`` applies FEEDLEDGER_* overrides.
    """

    database_path: Optional[str] = None
    base_currency: str = "INR"
    lookback_days: int = 90
    fetch_timeout: float = 30.0
    rate_url: str = DEFAULT_RATE_URL
    rate_refresh_hours: float = 6.0

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "EngineConfig":
        """Build a config from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        return cls(
            database_path=env.get("FEEDLEDGER_DB_PATH"),
            base_currency=env.get("FEEDLEDGER_BASE_CURRENCY", cls.base_currency).strip().upper(),
            lookback_days=int(env.get("FEEDLEDGER_LOOKBACK_DAYS", cls.lookback_days)),
            fetch_timeout=float(env.get("FEEDLEDGER_FETCH_TIMEOUT", cls.fetch_timeout)),
            rate_url=env.get("FEEDLEDGER_RATE_URL", cls.rate_url),
            rate_refresh_hours=float(
                env.get("FEEDLEDGER_RATE_REFRESH_HOURS", cls.rate_refresh_hours)
            ),
        )
