"""Configuration."""
from gumroad_license.core.config.transport_config import (
    DEFAULT_API,
    SUBSCRIPTION_MANAGE_URL,
    TransportConfig,
)

__all__ = [
    "DEFAULT_API",
    "SUBSCRIPTION_MANAGE_URL",
    "TransportConfig",
]
