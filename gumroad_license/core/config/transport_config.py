"""
Transport configuration for the license verification client.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_API = "https://api.gumroad.com/v2/licenses/verify"
SUBSCRIPTION_MANAGE_URL = "https://gumroad.com/subscriptions/{subscription_id}/manage"


class TransportConfig(BaseModel):
    """Timeouts, pool bounds and retry policy for a verifier's HTTP client."""

    # Passed explicitly to each verifier, never read from the environment
    model_config = ConfigDict(frozen=True)

    # TCP connect + TLS handshake
    handshake_timeout: float = Field(10.0, gt=0)
    # Upper bound for a single attempt, from connect to the last body byte
    call_timeout: float = Field(60.0, gt=0)

    max_connections: int = Field(100, ge=1)
    max_idle_connections: int = Field(100, ge=0)
    idle_connection_timeout: float = Field(90.0, gt=0)

    http2: bool = True

    # Retry on provider side faults (status >= 500)
    max_attempts: int = Field(5, ge=1)
    backoff_step: float = Field(0.5, ge=0)

    @field_validator("max_idle_connections")
    @classmethod
    def cap_idle_connections(cls, v, info):
        max_connections = info.data.get("max_connections")
        if max_connections is not None and v > max_connections:
            return max_connections
        return v

    def backoff(self, attempt: int) -> float:
        """Seconds to sleep after a failed ``attempt`` (1-based) before the next one."""
        return attempt * self.backoff_step
