"""Runtime settings for the WebCNC server, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    data_dir: Path = Path("./data")
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    ws_ping_interval: float = 20.0
    ws_ping_timeout: float = 20.0

    @property
    def db_path(self) -> Path:
        return self.data_dir / "webcnc.db"

    @property
    def designs_dir(self) -> Path:
        return self.data_dir / "designs"


def _env_number(name: str, default: str, cast=int):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    """Build :class:`Settings` from ``WEBCNC_*`` environment variables."""
    origins = os.environ.get("WEBCNC_CORS_ORIGINS", "*")
    return Settings(
        host=os.environ.get("WEBCNC_HOST", "0.0.0.0"),
        # PORT is honoured for PaaS hosts that inject it
        port=_env_number("WEBCNC_PORT", os.environ.get("PORT", "3000")),
        data_dir=Path(os.environ.get("WEBCNC_DATA_DIR", "./data")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.environ.get("WEBCNC_LOG_LEVEL", "INFO").upper(),
        ws_ping_interval=_env_number("WEBCNC_WS_PING_INTERVAL", "20", float),
        ws_ping_timeout=_env_number("WEBCNC_WS_PING_TIMEOUT", "20", float),
    )
