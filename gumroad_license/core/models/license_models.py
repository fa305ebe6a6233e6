"""Pydantic models for the Gumroad license verification API."""
from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from typing import Any, Optional
from datetime import datetime


# Timestamps the API leaves unset come back as null, "" or Go's zero time
_ZERO_TIME_PREFIX = "0001-01-01"


class Purchase(BaseModel):
    """Purchase/subscription facts for a license key, as returned by Gumroad."""
    model_config = ConfigDict(extra="ignore")

    seller_id: str = Field("", description="Gumroad seller identifier")
    product_id: str = Field("", description="Product identifier the key belongs to")
    product_name: str = Field("", description="Human readable product name")
    permalink: str = Field("", description="Short product permalink")
    email: str = Field("", description="Buyer email")
    license_key: str = Field("", description="License key echoed back by the server")
    quantity: int = Field(0, description="Number of seats purchased")

    refunded: StrictBool = False
    disputed: StrictBool = False
    chargebacked: StrictBool = False
    test: StrictBool = Field(False, description="Purchase made by the seller in test mode")

    sale_timestamp: Optional[datetime] = None
    subscription_id: str = ""
    subscription_ended_at: Optional[datetime] = None
    subscription_cancelled_at: Optional[datetime] = None
    subscription_failed_at: Optional[datetime] = None

    @field_validator(
        "seller_id", "product_id", "product_name", "permalink", "email",
        "license_key", "subscription_id",
        mode="before",
    )
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("quantity", mode="before")
    @classmethod
    def null_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("refunded", "disputed", "chargebacked", "test", mode="before")
    @classmethod
    def null_to_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator(
        "sale_timestamp", "subscription_ended_at",
        "subscription_cancelled_at", "subscription_failed_at",
        mode="before",
    )
    @classmethod
    def zero_time_to_none(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str) and (not v.strip() or v.startswith(_ZERO_TIME_PREFIX)):
            return None
        if isinstance(v, datetime):
            return None if v.year == 1 else v
        if not isinstance(v, str):
            # The API sends RFC 3339 strings; a bare number is not a timestamp
            raise ValueError("timestamp must be an RFC 3339 string")
        return v

    @staticmethod
    def is_zero(ts: Optional[datetime]) -> bool:
        """True when the timestamp is the "did not happen" sentinel."""
        return ts is None or ts.year == 1

    @property
    def subscription_cancelled(self) -> bool:
        return not self.is_zero(self.subscription_cancelled_at)

    @property
    def subscription_failed(self) -> bool:
        return not self.is_zero(self.subscription_failed_at)


class VerificationResponse(BaseModel):
    """Decoded reply of ``POST /v2/licenses/verify``."""
    model_config = ConfigDict(extra="ignore")

    success: StrictBool = False
    uses: int = Field(0, description="How many times the key has been verified before")
    message: str = Field("", description="Failure reason, only set when success is false")
    purchase: Purchase = Field(default_factory=Purchase)

    @field_validator("message", mode="before")
    @classmethod
    def null_message(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("success", mode="before")
    @classmethod
    def null_success(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("uses", mode="before")
    @classmethod
    def null_uses(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("purchase", mode="before")
    @classmethod
    def null_purchase(cls, v: Any) -> Any:
        return {} if v is None else v
