"""
License verification against the Gumroad licensing API.

A Verifier is bound to one product and owns its HTTP client. verify() posts the
product id and license key, retries while the provider answers with a server
error, then classifies the decoded purchase:

1. success is false             -> InvalidLicense
2. purchase refunded            -> Refunded
3. subscription cancelled       -> SubscriptionCancelled
4. subscription renewal failed  -> SubscriptionRenewalFailed
5. product id not echoed back   -> ProductMismatch   (ApiSchema.EXTENDED only)
6. license key not echoed back  -> LicenseMismatch   (ApiSchema.EXTENDED only)
7. custom validate hook         -> whatever the hook raises
"""
import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import httpx
import logfire
from pydantic import ValidationError

from gumroad_license.core.config.transport_config import (
    DEFAULT_API,
    SUBSCRIPTION_MANAGE_URL,
    TransportConfig,
)
from gumroad_license.core.models.license_models import VerificationResponse
from gumroad_license.core.service.license_verification.errors import (
    InvalidArgument,
    InvalidLicense,
    LicenseMismatch,
    MalformedResponse,
    ProductMismatch,
    ProviderUnavailable,
    Refunded,
    SubscriptionCancelled,
    SubscriptionRenewalFailed,
    TransportFailure,
    VerificationCancelled,
)
from gumroad_license.core.service.license_verification.transport import build_client


ValidateHook = Callable[[VerificationResponse], Union[None, Awaitable[None]]]


class ApiSchema(str, Enum):
    """
    Which shape of the licensing API a deployment speaks.

    MINIMAL:  request keyed by product_id, purchase may omit product/key echo
    EXTENDED: request keyed by product_id, purchase echoes product_id and license_key
              and both are checked against what was submitted
    LEGACY:   request keyed by product_permalink, no echo checks
    """
    MINIMAL = "minimal"
    EXTENDED = "extended"
    LEGACY = "legacy"

    @property
    def product_param(self) -> str:
        return "product_permalink" if self is ApiSchema.LEGACY else "product_id"

    @property
    def checks_echo(self) -> bool:
        return self is ApiSchema.EXTENDED


def _mask(key: str) -> str:
    """Keep only the last four characters of a license key for logs."""
    if len(key) <= 4:
        return "****"
    return "****" + key[-4:]


class Verifier:
    """Verifies license keys for a single Gumroad product."""

    def __init__(
        self,
        product_id: str,
        *,
        api: str = DEFAULT_API,
        client: Optional[httpx.AsyncClient] = None,
        validate: Optional[ValidateHook] = None,
        schema: Union[ApiSchema, str] = ApiSchema.MINIMAL,
        config: Optional[TransportConfig] = None,
    ):
        """
        Args:
            product_id: Gumroad product id (or permalink for ApiSchema.LEGACY)
            api: Verification endpoint, the production endpoint by default
            client: HTTP client to use instead of the pinned one built here
            validate: Extra check run on the decoded response after the built-in ones
            schema: API variant the endpoint speaks
            config: Timeouts, pool bounds and retry policy

        Raises:
            InvalidArgument: If product_id is empty
        """
        if not product_id:
            raise InvalidArgument("product ID cannot be empty")

        self._product_id = product_id
        self.api = api
        self.config = config or TransportConfig()
        self.schema = ApiSchema(schema)
        self.validate = validate
        self.client = client if client is not None else build_client(self.config)

    @property
    def product_id(self) -> str:
        return self._product_id

    def __repr__(self) -> str:
        return f"Verifier(product_id={self._product_id!r}, api={self.api!r}, schema={self.schema.value!r})"

    async def __aenter__(self) -> "Verifier":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client and its pooled connections."""
        await self.client.aclose()

    async def verify(self, key: str, *, timeout: Optional[float] = None) -> VerificationResponse:
        """
        Verify a license key.

        Args:
            key: License key entered by the user
            timeout: Deadline in seconds for reaching the API, retries and backoff included

        Returns:
            The decoded API response when the license is valid

        Raises:
            InvalidArgument: If key is empty, no request is sent
            TransportFailure: If the API could not be reached
            ProviderUnavailable: If every attempt got a server error
            MalformedResponse: If the body is not the documented JSON object
            VerificationCancelled: If the deadline elapsed
            LicenseRejected: One of its subclasses when the license is not valid
        """
        if not key:
            raise InvalidArgument("license key cannot be empty")

        logfire.info(
            f"Verifying license for product {self._product_id}",
            extra={"product_id": self._product_id, "key": _mask(key), "api": self.api}
        )

        status_code, body = await self._fetch_within(key, timeout)

        response = self._decode(body)
        logfire.debug(
            "License verification response received",
            extra={"status_code": status_code, "success": response.success, "uses": response.uses}
        )

        self._classify(response, key)

        # Outside the deadline, so the hook's own exceptions reach the caller as raised
        if self.validate is not None:
            result = self.validate(response)
            if inspect.isawaitable(result):
                await result

        logfire.info(
            f"License verified for product {self._product_id}",
            extra={"product_id": self._product_id, "key": _mask(key), "uses": response.uses}
        )
        return response

    async def _fetch_within(self, key: str, timeout: Optional[float]) -> Tuple[int, str]:
        """Run the request/retry phase under the caller's deadline, if any."""
        if timeout is None:
            return await self._fetch(key)

        try:
            return await asyncio.wait_for(self._fetch(key), timeout)
        except asyncio.TimeoutError as e:
            logfire.warning(
                f"License verification for product {self._product_id} cancelled after {timeout}s",
                extra={"product_id": self._product_id, "key": _mask(key)}
            )
            raise VerificationCancelled(f"license check cancelled: deadline of {timeout}s exceeded") from e

    async def _fetch(self, key: str) -> Tuple[int, str]:
        """Post the form, retrying server errors, and return the final status and body."""
        form = {
            self.schema.product_param: self._product_id,
            "license_key": key,
        }

        max_attempts = self.config.max_attempts
        for attempt in range(1, max_attempts + 1):
            status_code, body = await self._post(form)
            if status_code < 500:
                return status_code, body

            if attempt == max_attempts:
                logfire.error(
                    f"Licensing API still failing after {attempt} attempts",
                    extra={"status_code": status_code, "response_body": body[:512]}
                )
                raise ProviderUnavailable(status_code, body, attempt)

            delay = self.config.backoff(attempt)
            logfire.warning(
                f"Licensing API returned {status_code}, retrying in {delay}s",
                extra={"attempt": attempt, "status_code": status_code}
            )
            await asyncio.sleep(delay)

    async def _post(self, form: Dict[str, str]) -> Tuple[int, str]:
        """Send one request and read the whole body, bounded by the per-call timeout."""
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        try:
            response = await asyncio.wait_for(
                self.client.post(self.api, data=form, headers=headers),
                self.config.call_timeout,
            )
        except httpx.RequestError as e:
            logfire.error(f"Request error calling licensing API: {str(e)}", extra={"api": self.api})
            raise TransportFailure(f"failed to check license: {e!r}") from e
        except asyncio.TimeoutError as e:
            logfire.error("Timeout calling licensing API", extra={"api": self.api})
            raise TransportFailure(
                f"failed to check license: no response within {self.config.call_timeout}s"
            ) from e

        return response.status_code, response.text

    @staticmethod
    def _decode(body: str) -> VerificationResponse:
        try:
            return VerificationResponse.model_validate_json(body)
        except ValidationError as e:
            logfire.error("Could not decode licensing API response", extra={"response_body": body[:512]})
            errors = e.errors()
            reason = errors[0]["msg"] if errors else str(e)
            raise MalformedResponse(reason, body) from e

    def _classify(self, response: VerificationResponse, key: str) -> None:
        """Raise the first matching rejection, in the documented order."""
        purchase = response.purchase

        if not response.success:
            raise InvalidLicense(response)

        if purchase.refunded:
            raise Refunded(response)

        if purchase.subscription_cancelled:
            raise SubscriptionCancelled(response)

        if purchase.subscription_failed:
            manage_url = SUBSCRIPTION_MANAGE_URL.format(subscription_id=purchase.subscription_id)
            raise SubscriptionRenewalFailed(response, manage_url)

        if self.schema.checks_echo:
            if purchase.product_id != self._product_id:
                raise ProductMismatch(self._product_id, purchase.product_id, response)
            if purchase.license_key != key:
                raise LicenseMismatch(response)


def new_verifier(product_id: str, **kwargs: Any) -> Verifier:
    """Build a Verifier for product_id with the pinned production transport."""
    return Verifier(product_id, **kwargs)
