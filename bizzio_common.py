"""Shared helpers for the Bizzio → Polylang import scripts.

Configuration comes from ``.env`` / the environment, same as the Woo scripts:
- WP_BASE_URL (or WP_URL)
- WP_USERNAME / WP_APP_PASSWORD (application password, Basic auth)
- WP_TIMEOUT, WP_VERIFY_SSL (optional)
- BIZZIO_SOURCE_LANG / BIZZIO_DEST_LANG (optional, default bg / en)
"""

from __future__ import annotations

import os
import re
import sys
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_SOURCE_LANG = "bg"
DEFAULT_DEST_LANG = "en"


def _ts() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def log(msg: str) -> None:
    print(f"[{_ts()}] {msg}", flush=True)


def warn(msg: str) -> None:
    print(f"[{_ts()}] ⚠️ {msg}", file=sys.stderr, flush=True)


def error(msg: str) -> None:
    print(f"[{_ts()}] ❌ {msg}", file=sys.stderr, flush=True)


def slugify(name: str) -> str:
    """URL-friendly slug; empty when nothing ASCII survives (WP then picks one)."""
    norm = unicodedata.normalize('NFKD', name or '').encode('ascii', 'ignore').decode('ascii')
    norm = norm.lower()
    norm = re.sub(r'[^a-z0-9]+', '-', norm)
    return norm.strip('-')[:190]


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class WpConfig:
    base_url: str = ""
    username: str = ""
    app_password: str = ""
    timeout: int = 60
    verify_ssl: bool = True

    def missing(self) -> List[str]:
        out: List[str] = []
        if not self.base_url:
            out.append('WP_BASE_URL')
        if not self.username:
            out.append('WP_USERNAME')
        if not self.app_password:
            out.append('WP_APP_PASSWORD')
        return out


def load_env() -> None:
    load_dotenv(find_dotenv(usecwd=True), override=False)


def load_wp_config() -> WpConfig:
    try:
        timeout = int(os.getenv('WP_TIMEOUT') or 60)
    except ValueError:
        timeout = 60
    return WpConfig(
        base_url=(os.getenv('WP_BASE_URL') or os.getenv('WP_URL') or '').strip(),
        username=(os.getenv('WP_USERNAME') or '').strip(),
        app_password=(os.getenv('WP_APP_PASSWORD') or '').strip(),
        timeout=timeout,
        verify_ssl=_env_flag('WP_VERIFY_SSL', True),
    )


def default_lang(var: str, fallback: str) -> str:
    return (os.getenv(var) or fallback).strip().lower()


@dataclass
class ImportStats:
    created: int = 0
    updated: int = 0
    skipped: int = 0

    def summary(self) -> str:
        return f"Created: {self.created}, Updated: {self.updated}, Skipped: {self.skipped}"


def join_ids(ids: Optional[List[int]]) -> str:
    return ', '.join(str(i) for i in ids or [])
