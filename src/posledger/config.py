from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
import json
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    store_path: Path
    logs_dir: Path
    exports_dir: Path


@dataclass(frozen=True)
class LedgerSettings:
    low_stock_threshold: int | None = None
    confirmation_ttl_seconds: int = 120
    connectivity_probe_url: str = "https://www.google.com/generate_204"
    connectivity_timeout: float = 3.0


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "PosLedger") -> AppPaths:
    override = os.environ.get("POSLEDGER_HOME")
    if override:
        base = Path(override)
    elif sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    exports = base / "exports"
    store = base / "ledger.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, store_path=store, logs_dir=logs, exports_dir=exports)


def load_settings(path: Path | str | None = None) -> LedgerSettings:
    """Reads optional JSON overrides; unknown keys are ignored."""
    if path is None or not Path(path).exists():
        return LedgerSettings()
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    known = {f.name for f in fields(LedgerSettings)}
    return LedgerSettings(**{k: v for k, v in raw.items() if k in known})
