"""
Exceptions raised by license verification.

Every failure derives from LicenseError. Failures that mean the key itself is not
(or no longer) valid derive from LicenseRejected, so callers can tell them apart
from network or provider trouble.
"""
from typing import Optional

from gumroad_license.core.models.license_models import VerificationResponse


# Longest body excerpt kept on an exception
BODY_SNIPPET_LENGTH = 512


def _snippet(body: str) -> str:
    if len(body) <= BODY_SNIPPET_LENGTH:
        return body
    return body[:BODY_SNIPPET_LENGTH] + "..."


class LicenseError(Exception):
    """Base exception for all license verification errors."""


class InvalidArgument(LicenseError, ValueError):
    """Raised when the product id or license key is empty."""


class TransportFailure(LicenseError):
    """Raised when the licensing API cannot be reached (DNS, connect, TLS, timeout)."""


class VerificationCancelled(LicenseError):
    """Raised when the caller's deadline elapses before verification completes."""


class ProviderUnavailable(LicenseError):
    """Raised when the licensing API keeps answering with a server error."""

    def __init__(self, status_code: int, body: str, attempts: int):
        self.status_code = status_code
        self.body = body
        self.attempts = attempts
        super().__init__(
            f"licensing API unavailable after {attempts} attempts "
            f"(last status {status_code}): {_snippet(body)}"
        )


class MalformedResponse(LicenseError):
    """Raised when the response body is not the documented JSON object."""

    def __init__(self, reason: str, body: str):
        self.body = body
        super().__init__(f"malformed licensing API response: {reason}: {_snippet(body)}")


class LicenseRejected(LicenseError):
    """Base class for a decoded response that does not grant a valid license."""

    def __init__(self, message: str, response: Optional[VerificationResponse] = None):
        self.response = response
        super().__init__(message)


class InvalidLicense(LicenseRejected):
    """The API reports the key is not valid for the product."""

    def __init__(self, response: VerificationResponse):
        super().__init__(f"invalid license: {response.message}", response)


class Refunded(LicenseRejected):
    """The purchase behind the key was refunded."""

    def __init__(self, response: VerificationResponse):
        super().__init__("license was refunded and is now invalid", response)


class SubscriptionCancelled(LicenseRejected):
    """The subscription behind the key was cancelled."""

    def __init__(self, response: VerificationResponse):
        super().__init__("subscription was cancelled, license is now invalid", response)


class SubscriptionRenewalFailed(LicenseRejected):
    """The subscription behind the key failed to renew."""

    def __init__(self, response: VerificationResponse, manage_url: str):
        self.subscription_id = response.purchase.subscription_id
        self.manage_url = manage_url
        super().__init__(
            f"failed to renew subscription {self.subscription_id}, "
            f"please check at {manage_url}",
            response,
        )


class ProductMismatch(LicenseRejected):
    """The server vouched for a purchase of a different product."""

    def __init__(self, expected: str, actual: str, response: VerificationResponse):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"license belongs to product {actual!r}, expected {expected!r}", response
        )


class LicenseMismatch(LicenseRejected):
    """The server echoed back a different license key than the one submitted."""

    def __init__(self, response: VerificationResponse):
        super().__init__("license key in response does not match the submitted key", response)
