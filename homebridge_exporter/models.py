"""Pydantic models for Homebridge API payloads and exporter responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, JsonValue

# Any JSON value Homebridge sends for a characteristic: usually a number,
# bool or string, occasionally an array or object.  Only
# ``metrics.coerce_value`` interprets it.
CharacteristicValue = JsonValue


class TokenResponse(BaseModel):
    """Body of a successful ``POST /api/auth/login``."""

    access_token: str
    token_type: str
    expires_in: int = Field(ge=0)


class Credential(BaseModel):
    """A bearer token together with the moment it was issued.

    ``issued_at`` is a reading of the session clock (monotonic seconds),
    not wall-clock time.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    issued_at: float

    def is_valid(self, now: float) -> bool:
        """Return ``True`` while fewer than ``expires_in`` seconds have passed."""
        return now - self.issued_at < self.expires_in


class ServiceCharacteristic(BaseModel):
    """One readable property of an accessory service (e.g. ``On``)."""

    service_type: str = Field(alias="serviceType")
    characteristic_type: str = Field(alias="type")
    description: str = ""
    format: str = ""
    value: CharacteristicValue = None
    service_name: str | None = Field(default=None, alias="serviceName")
    aid: int | None = None
    iid: int | None = None
    uuid: str | None = None
    perms: list[str] = []
    can_read: bool = Field(default=False, alias="canRead")
    can_write: bool = Field(default=False, alias="canWrite")
    ev: bool = False


class AccessoryRecord(BaseModel):
    """A device exposed by Homebridge, as returned by ``/api/accessories``."""

    unique_id: str = Field(alias="uniqueId")
    service_name: str = Field(alias="serviceName")
    human_type: str = Field(default="", alias="humanType")
    aid: int | None = None
    iid: int | None = None
    uuid: str | None = None
    type: str | None = None
    service_characteristics: list[ServiceCharacteristic] = Field(
        default_factory=list, alias="serviceCharacteristics"
    )


class ErrorResponse(BaseModel):
    error: str


class SuccessResponse(BaseModel):
    result: str
