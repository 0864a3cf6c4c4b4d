"""
Settings Loader

Reads service configuration from the environment once at process start.
Billing and escalation policy values are exposed as named settings so the
engines never hardcode them.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Table names in the hosted store
CLIENTS_TABLE = "clients"
NOTICES_TABLE = "notices"
CALLS_TABLE = "calls"
POA_TABLE = "poa_records"

DEFAULT_CRITICAL_KEYWORDS: Tuple[str, ...] = (
    "final",
    "levy",
    "lien",
    "intent to levy",
    "final notice",
)


@dataclass(frozen=True)
class BillingSettings:
    """Billing policy constants."""
    hourly_rate: Decimal = Decimal("250")
    minimum_fee: Decimal = Decimal("250")
    rounding_unit: Decimal = Decimal("5")
    minimum_threshold_minutes: int = 60


@dataclass(frozen=True)
class EscalationSettings:
    """Escalation policy constants."""
    threshold_days: int = 3
    critical_keywords: Tuple[str, ...] = DEFAULT_CRITICAL_KEYWORDS
    due_soon_days: int = 7


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    environment: str = "development"
    billing: BillingSettings = field(default_factory=BillingSettings)
    escalation: EscalationSettings = field(default_factory=EscalationSettings)
    worker_run_hour: int = 0
    cors_origins: List[str] = field(default_factory=list)

    @property
    def store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.environ.get(name)
    if not raw:
        return Decimal(default)
    try:
        return Decimal(raw)
    except ArithmeticError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return Decimal(default)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def load_settings() -> Settings:
    """
    Build settings from environment variables.

    A .env file in the working directory is loaded first if present.
    """
    load_dotenv()

    supabase_url = os.environ.get("SUPABASE_URL") or os.environ.get("NEXT_PUBLIC_SUPABASE_URL")
    # Service role key gives full access; anon key is the fallback
    supabase_key = (
        os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        or os.environ.get("SUPABASE_ANON_KEY")
        or os.environ.get("NEXT_PUBLIC_SUPABASE_ANON_KEY")
    )

    billing = BillingSettings(
        hourly_rate=_env_decimal("BILLING_HOURLY_RATE", "250"),
        minimum_fee=_env_decimal("BILLING_MINIMUM_FEE", "250"),
        rounding_unit=_env_decimal("BILLING_ROUNDING_UNIT", "5"),
        minimum_threshold_minutes=_env_int("BILLING_MINIMUM_THRESHOLD_MINUTES", 60),
    )
    escalation = EscalationSettings(
        threshold_days=_env_int("ESCALATION_THRESHOLD_DAYS", 3),
        due_soon_days=_env_int("DUE_SOON_DAYS", 7),
    )

    extra_origins = os.environ.get("CORS_ORIGINS", "")
    cors_origins = [o.strip() for o in extra_origins.split(",") if o.strip()]

    return Settings(
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        environment=os.environ.get("ENVIRONMENT", "development"),
        billing=billing,
        escalation=escalation,
        worker_run_hour=_env_int("WORKER_RUN_HOUR", 0),
        cors_origins=cors_origins,
    )
