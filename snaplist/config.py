"""
Configuration
=============
Environment-driven settings, loaded once at startup.

Marketplace credentials live in explicit config structs that are injected
into each adapter at construction. AppConfig.validate() checks every
enabled marketplace once, so adapters never look anything up per call.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


load_dotenv()

DEFAULT_MARKETPLACE_PRIORITY = ["ebay", "facebook"]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip().lower() for item in value.split(",") if item.strip()]


@dataclass
class EbayConfig:
    """Trading API credentials (User Auth Token, not an OAuth token)"""
    app_id: Optional[str] = None
    cert_id: Optional[str] = None
    dev_id: Optional[str] = None
    auth_token: Optional[str] = None
    sandbox: bool = False
    site_id: str = "0"
    compatibility_level: str = "967"
    timeout: float = 15.0

    def __post_init__(self):
        # SBX- cert ids only work against the sandbox
        if self.cert_id and self.cert_id.startswith("SBX-"):
            self.sandbox = True

    @classmethod
    def from_env(cls) -> "EbayConfig":
        sandbox_env = os.getenv("EBAY_SANDBOX_MODE")
        return cls(
            app_id=os.getenv("EBAY_APP_ID"),
            cert_id=os.getenv("EBAY_CERT_ID"),
            dev_id=os.getenv("EBAY_DEV_ID"),
            auth_token=os.getenv("EBAY_AUTH_TOKEN"),
            sandbox=sandbox_env is not None and sandbox_env.lower() == "true",
            timeout=float(os.getenv("EBAY_TIMEOUT_SECONDS", "15")),
        )

    def validate(self) -> List[str]:
        """Return the names of missing required fields"""
        required = {
            "EBAY_APP_ID": self.app_id,
            "EBAY_CERT_ID": self.cert_id,
            "EBAY_DEV_ID": self.dev_id,
            "EBAY_AUTH_TOKEN": self.auth_token,
        }
        return [name for name, value in required.items() if not value]

    @property
    def api_url(self) -> str:
        if self.sandbox:
            return "https://api.sandbox.ebay.com/ws/api.dll"
        return "https://api.ebay.com/ws/api.dll"

    @property
    def item_url_base(self) -> str:
        if self.sandbox:
            return "https://sandbox.ebay.com/itm/"
        return "https://www.ebay.com/itm/"


@dataclass
class FacebookConfig:
    """Graph API credentials for Marketplace commerce listings"""
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    access_token: Optional[str] = None
    graph_version: str = "v18.0"
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> "FacebookConfig":
        return cls(
            app_id=os.getenv("FACEBOOK_APP_ID"),
            app_secret=os.getenv("FACEBOOK_APP_SECRET"),
            access_token=os.getenv("FACEBOOK_ACCESS_TOKEN"),
            graph_version=os.getenv("FACEBOOK_GRAPH_VERSION", "v18.0"),
            timeout=float(os.getenv("FACEBOOK_TIMEOUT_SECONDS", "15")),
        )

    def validate(self) -> List[str]:
        required = {
            "FACEBOOK_APP_ID": self.app_id,
            "FACEBOOK_APP_SECRET": self.app_secret,
            "FACEBOOK_ACCESS_TOKEN": self.access_token,
        }
        return [name for name, value in required.items() if not value]

    @property
    def graph_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_version}"


@dataclass
class PricingConfig:
    decay_factor: Decimal = Decimal("0.9")
    decay_after_days: int = 7
    min_price_ratio: Decimal = Decimal("0.5")

    @classmethod
    def from_env(cls) -> "PricingConfig":
        return cls(
            decay_factor=Decimal(os.getenv("PRICE_DECAY_FACTOR", "0.9")),
            decay_after_days=int(os.getenv("PRICE_DECAY_AFTER_DAYS", "7")),
            min_price_ratio=Decimal(os.getenv("MIN_PRICE_RATIO", "0.5")),
        )


@dataclass
class LedgerConfig:
    minimum_payout: Decimal = Decimal("50.00")

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        return cls(minimum_payout=Decimal(os.getenv("MINIMUM_PAYOUT", "50.00")))


@dataclass
class SchedulerConfig:
    decay_interval_seconds: int = 24 * 60 * 60
    reconciliation_interval_seconds: int = 15 * 60
    run_budget_seconds: int = 10 * 60
    poll_interval_seconds: int = 60
    max_workers: int = 4

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        return cls(
            decay_interval_seconds=int(os.getenv("DECAY_INTERVAL_SECONDS", str(24 * 60 * 60))),
            reconciliation_interval_seconds=int(
                os.getenv("RECONCILIATION_INTERVAL_SECONDS", str(15 * 60))
            ),
            run_budget_seconds=int(os.getenv("RUN_BUDGET_SECONDS", str(10 * 60))),
            poll_interval_seconds=int(os.getenv("SCHEDULER_POLL_SECONDS", "60")),
            max_workers=int(os.getenv("MARKETPLACE_MAX_WORKERS", "4")),
        )


@dataclass
class SmtpConfig:
    """Operator inbox settings; to_email receives a copy of every seller's notifications"""

    host: str = "smtp.gmail.com"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    from_email: Optional[str] = None
    to_email: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        return cls(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USERNAME"),
            password=os.getenv("SMTP_PASSWORD"),
            from_email=os.getenv("NOTIFICATION_FROM_EMAIL"),
            to_email=os.getenv("NOTIFICATION_TO_EMAIL"),
        )

    @property
    def enabled(self) -> bool:
        return all([self.username, self.password, self.from_email, self.to_email])


@dataclass
class AppConfig:
    database_url: str = "sqlite:///snaplist.db"
    marketplaces: List[str] = field(default_factory=lambda: list(DEFAULT_MARKETPLACE_PRIORITY))
    marketplace_priority: List[str] = field(
        default_factory=lambda: list(DEFAULT_MARKETPLACE_PRIORITY)
    )
    log_level: str = "INFO"
    json_logs: bool = False
    ebay: EbayConfig = field(default_factory=EbayConfig)
    facebook: FacebookConfig = field(default_factory=FacebookConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///snaplist.db"),
            marketplaces=_env_list("ENABLED_MARKETPLACES", DEFAULT_MARKETPLACE_PRIORITY),
            marketplace_priority=_env_list("MARKETPLACE_PRIORITY", DEFAULT_MARKETPLACE_PRIORITY),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=_env_bool("JSON_LOGS"),
            ebay=EbayConfig.from_env(),
            facebook=FacebookConfig.from_env(),
            pricing=PricingConfig.from_env(),
            ledger=LedgerConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            smtp=SmtpConfig.from_env(),
        )

    def marketplace_config(self, marketplace: str):
        configs = {"ebay": self.ebay, "facebook": self.facebook}
        if marketplace not in configs:
            raise ConfigurationError([f"unknown marketplace '{marketplace}'"])
        return configs[marketplace]

    def validate(self) -> None:
        """
        Check every enabled marketplace once.

        Raises:
            ConfigurationError: Listing every missing field
        """
        missing: List[str] = []
        for marketplace in self.marketplaces:
            try:
                missing.extend(self.marketplace_config(marketplace).validate())
            except ConfigurationError as e:
                missing.extend(e.missing)
        if missing:
            raise ConfigurationError(missing)
