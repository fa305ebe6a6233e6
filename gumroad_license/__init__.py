"""
Gumroad license key verification.

    async with new_verifier("my-product-id") as verifier:
        await verifier.verify(license_key)
"""
from gumroad_license.core.config.transport_config import DEFAULT_API, TransportConfig
from gumroad_license.core.models.license_models import Purchase, VerificationResponse
from gumroad_license.core.service.license_verification import (
    ApiSchema,
    InvalidArgument,
    InvalidLicense,
    LicenseError,
    LicenseMismatch,
    LicenseRejected,
    MalformedResponse,
    ProductMismatch,
    ProviderUnavailable,
    Refunded,
    SubscriptionCancelled,
    SubscriptionRenewalFailed,
    TransportFailure,
    VerificationCancelled,
    Verifier,
    new_verifier,
)

__version__ = "1.0.0"

__all__ = [
    "DEFAULT_API",
    "TransportConfig",
    "Purchase",
    "VerificationResponse",
    "ApiSchema",
    "Verifier",
    "new_verifier",
    "LicenseError",
    "LicenseRejected",
    "InvalidArgument",
    "TransportFailure",
    "ProviderUnavailable",
    "MalformedResponse",
    "VerificationCancelled",
    "InvalidLicense",
    "Refunded",
    "SubscriptionCancelled",
    "SubscriptionRenewalFailed",
    "ProductMismatch",
    "LicenseMismatch",
]
