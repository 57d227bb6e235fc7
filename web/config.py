"""
Web API configuration.
"""
from core.config import config, VERSION

# Web server settings
WEB_HOST = config.web.host
WEB_PORT = config.web.port

# Rate limits (slowapi limit strings)
DEFAULT_RATE_LIMIT = f"{config.web.rate_limit_per_minute}/minute"
POSTBACK_RATE_LIMIT = f"{config.web.postback_rate_limit_per_minute}/minute"

# Longest range a report may span
MAX_RANGE_DAYS = config.web.max_range_days

__all__ = [
    "WEB_HOST",
    "WEB_PORT",
    "DEFAULT_RATE_LIMIT",
    "POSTBACK_RATE_LIMIT",
    "MAX_RANGE_DAYS",
    "VERSION",
]
