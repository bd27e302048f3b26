"""Environment-driven configuration.

`main.py` calls `load_dotenv()` before `Settings.from_env()`, so values may
come from a `.env` file as well as the process environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise RuntimeError(f"{name}={raw!r} is not a boolean (use true/false).")


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be a number.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}.")
    return value


@dataclass(frozen=True)
class Settings:
    database_dir: Optional[Path] = None
    database_reset_on_start: bool = False
    openai_api_key: str = ""
    persona_model: str = "gpt-4.1-mini"
    slack_webhook_url: str = ""
    slack_signing_secret: str = ""
    notify_timeout_seconds: float = 10.0
    notify_outbox_path: Optional[Path] = None
    admin_password: str = ""
    admin_path: str = "/ops-7f3a"
    admin_poll_seconds: float = 5.0
    session_active_window_seconds: float = 1800.0
    auto_escalate: bool = True
    operator_name: str = "the operator"
    site_url: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from `env` (defaults to `os.environ`)."""
        env = os.environ if env is None else env
        database_dir = env.get("DATABASE_DIR", "").strip()
        outbox = env.get("NOTIFY_OUTBOX_PATH", "").strip()
        admin_path = "/" + env.get("ADMIN_PATH", "/ops-7f3a").strip().strip("/")
        if admin_path == "/":
            raise RuntimeError("ADMIN_PATH must not be the site root.")
        return cls(
            database_dir=Path(database_dir).expanduser() if database_dir else None,
            database_reset_on_start=_flag(env, "DATABASE_RESET_ON_START", False),
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            persona_model=env.get("PERSONA_MODEL", "").strip() or "gpt-4.1-mini",
            slack_webhook_url=env.get("SLACK_WEBHOOK_URL", "").strip(),
            slack_signing_secret=env.get("SLACK_SIGNING_SECRET", ""),
            notify_timeout_seconds=_number(env, "NOTIFY_TIMEOUT_SECONDS", 10.0),
            notify_outbox_path=Path(outbox).expanduser() if outbox else None,
            admin_password=env.get("ADMIN_PASSWORD", ""),
            admin_path=admin_path,
            admin_poll_seconds=_number(env, "ADMIN_POLL_SECONDS", 5.0),
            session_active_window_seconds=_number(env, "SESSION_ACTIVE_WINDOW_SECONDS", 1800.0),
            auto_escalate=_flag(env, "AUTO_ESCALATE", True),
            operator_name=env.get("OPERATOR_NAME", "").strip() or "the operator",
            site_url=env.get("SITE_URL", "").strip(),
            log_level=(env.get("LOG_LEVEL", "") or "INFO").strip().upper(),
        )
