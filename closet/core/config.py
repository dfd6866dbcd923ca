"""
Marketplace configuration for Closet Swap.

Defines economic parameters, listing lifecycle limits, and the
settings of the listing assistant collaborator.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


@dataclass
class MarketConfig:
    """Marketplace-wide configuration parameters"""

    # Settlement parameters
    fee_rate: Decimal = Decimal("0.10")  # Seller fee on the clearing price
    bid_increment: Decimal = Decimal("1")  # Step over the runner-up's max bid

    # Listing lifecycle
    listing_lifetime_days: int = 90  # Default time until a listing expires
    expiry_sweep_seconds: float = 60.0  # Interval of the expiry sweep

    # Accounts
    default_age: int = 30  # Age assigned to provider-provisioned accounts
    adult_age: int = 18  # Minimum age for NSFW content
    admin_emails: Tuple[str, ...] = ()

    # Preferences
    search_history_limit: int = 5

    # Listing assistant
    assistant_api_key: Optional[str] = None
    assistant_model: str = "gemini-2.5-flash"
    assistant_long_model: str = "gemini-2.5-pro"
    assistant_timeout: float = 30.0

    # Paths
    data_dir: Path = Path("~/.closet").expanduser()
    log_dir: Path = Path("~/.closet/logs").expanduser()

    def ensure_dirs(self):
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


# Global config instance (can be overridden)
config = MarketConfig()


def _split_emails(raw: str) -> Tuple[str, ...]:
    return tuple(e.strip().lower() for e in raw.split(",") if e.strip())


def load_config(env_file: Optional[str] = None) -> MarketConfig:
    """
    Load configuration from environment variables.

    Variables are read from the process environment after loading
    ``env_file`` (or a ``.env`` in the working directory) with python-dotenv.

    Args:
        env_file: Optional path to a dotenv file

    Returns:
        MarketConfig instance
    """
    load_dotenv(env_file)

    cfg = MarketConfig()
    env = os.environ

    if "CLOSET_FEE_RATE" in env:
        cfg.fee_rate = Decimal(env["CLOSET_FEE_RATE"])
    if "CLOSET_BID_INCREMENT" in env:
        cfg.bid_increment = Decimal(env["CLOSET_BID_INCREMENT"])
    if "CLOSET_LISTING_LIFETIME_DAYS" in env:
        cfg.listing_lifetime_days = int(env["CLOSET_LISTING_LIFETIME_DAYS"])
    if "CLOSET_EXPIRY_SWEEP_SECONDS" in env:
        cfg.expiry_sweep_seconds = float(env["CLOSET_EXPIRY_SWEEP_SECONDS"])
    if "CLOSET_SEARCH_HISTORY_LIMIT" in env:
        cfg.search_history_limit = int(env["CLOSET_SEARCH_HISTORY_LIMIT"])
    if "CLOSET_ADMIN_EMAILS" in env:
        cfg.admin_emails = _split_emails(env["CLOSET_ADMIN_EMAILS"])
    if "CLOSET_DATA_DIR" in env:
        cfg.data_dir = Path(env["CLOSET_DATA_DIR"]).expanduser()
    if "CLOSET_LOG_DIR" in env:
        cfg.log_dir = Path(env["CLOSET_LOG_DIR"]).expanduser()
    if "CLOSET_ASSISTANT_MODEL" in env:
        cfg.assistant_model = env["CLOSET_ASSISTANT_MODEL"]

    cfg.assistant_api_key = env.get("GEMINI_API_KEY") or env.get("API_KEY")

    return cfg
