"""Data models."""
from gumroad_license.core.models.license_models import (
    Purchase,
    VerificationResponse,
)

__all__ = [
    "Purchase",
    "VerificationResponse",
]
