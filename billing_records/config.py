"""
Environment configuration for billing_records.

Values are read from the process environment, with a `.env` file in the
working directory loaded first when present.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / '.env')

PLACEHOLDER_API_KEY = "your-stripe-api-key-here"


def get_stripe_api_key() -> str:
    """Return the configured Stripe API key, or an empty string"""
    api_key = os.environ.get("STRIPE_API_KEY", "")
    if api_key == PLACEHOLDER_API_KEY:
        return ""
    return api_key


def get_stripe_api_version() -> str:
    return os.environ.get("STRIPE_API_VERSION", "")


def get_log_level() -> str:
    return os.environ.get("BILLING_LOG_LEVEL", "INFO")


def use_json_logs() -> bool:
    return os.environ.get("LOG_FORMAT", "json") == "json"
