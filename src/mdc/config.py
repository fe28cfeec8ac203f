from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    cache_db_path: Path
    logs_dir: Path
    exports_dir: Path


@dataclass(frozen=True)
class RemoteSettings:
    url: str = ""
    api_key: str = ""
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)


@dataclass(frozen=True)
class BusinessRules:
    min_wholesale_units: int = 6
    personal_allowance: Decimal = Decimal("12570")
    tax_rate: Decimal = Decimal("0.20")
    vat_threshold: Decimal = Decimal("90000")
    invoice_due_days: int = 14
    expiry_warning_days: int = 30
    default_reorder_level: int = 10
    default_shelf_life_days: int = 180
    max_pets_per_registration: int = 2


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "MDCPro") -> AppPaths:
    override = os.environ.get("MDC_HOME", "").strip()
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
    db = base / "cache.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    exports.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, cache_db_path=db, logs_dir=logs, exports_dir=exports)


def get_remote_settings() -> RemoteSettings:
    try:
        timeout = float(os.environ.get("MDC_REMOTE_TIMEOUT", "10"))
    except ValueError:
        timeout = 10.0
    return RemoteSettings(
        url=os.environ.get("MDC_SUPABASE_URL", "").strip(),
        api_key=os.environ.get("MDC_SUPABASE_KEY", "").strip(),
        timeout_seconds=timeout,
    )


def get_business_rules() -> BusinessRules:
    defaults = BusinessRules()
    return BusinessRules(
        min_wholesale_units=int(os.environ.get("MDC_MIN_WHOLESALE_UNITS", defaults.min_wholesale_units)),
        personal_allowance=Decimal(os.environ.get("MDC_PERSONAL_ALLOWANCE", str(defaults.personal_allowance))),
        tax_rate=Decimal(os.environ.get("MDC_TAX_RATE", str(defaults.tax_rate))),
        vat_threshold=Decimal(os.environ.get("MDC_VAT_THRESHOLD", str(defaults.vat_threshold))),
        invoice_due_days=int(os.environ.get("MDC_INVOICE_DUE_DAYS", defaults.invoice_due_days)),
    )
