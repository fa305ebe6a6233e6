"""License verification service."""
from gumroad_license.core.service.license_verification.errors import (
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
)
from gumroad_license.core.service.license_verification.transport import (
    build_client,
    build_ssl_context,
)
from gumroad_license.core.service.license_verification.verifier import (
    ApiSchema,
    Verifier,
    new_verifier,
)

__all__ = [
    "ApiSchema",
    "Verifier",
    "new_verifier",
    "build_client",
    "build_ssl_context",
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
