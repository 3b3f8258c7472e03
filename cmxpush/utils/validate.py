"""
Pydantic schemas for pushed probe batches and stored client records.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

# largest value an SQLite INTEGER column can hold
SQLITE_MAX_INT = 2**63 - 1


def normalize_mac(mac: str) -> str:
    """
    Canonical form used for every store key: trimmed, lowercase.
    """
    return mac.strip().lower()


class Location(BaseModel):
    """
    Location fix attached to a probe.
    """
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    lat: float
    lng: float
    unc: Optional[float] = None
    n_samples: Optional[int] = Field(default=None, alias="nSamples", le=SQLITE_MAX_INT)


class Probe(BaseModel):
    """
    A single client-detection entry from the `probing` list.
    """
    client_mac: str = Field(min_length=1)
    ap_mac: Optional[str] = None
    rssi: Optional[int | float] = None
    last_seen: Optional[str] = None
    last_seen_millis: int = Field(default=0, le=SQLITE_MAX_INT)
    location: Optional[Location] = None

    @field_validator("client_mac")
    @classmethod
    def _canonical_mac(cls, v: str) -> str:
        v = normalize_mac(v)
        if not v:
            raise ValueError("client_mac is blank")
        return v

    @field_validator("last_seen_millis", mode="before")
    @classmethod
    def _missing_millis(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("last_seen_millis")
    @classmethod
    def _negative_millis(cls, v: int) -> int:
        # anything below zero compares like "never seen"
        return max(v, 0)


class EventBatch(BaseModel):
    """
    Top level of a pushed body. Probes stay raw so each one can fail on its own,
    and `probing` is only checked once the secret has been accepted.
    """
    secret: str
    probing: Any = None
    version: Optional[str] = None
    type: Optional[str] = None


class ClientRecord(BaseModel):
    """
    Last known location of one wireless client.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    mac: str
    seen_at: Optional[str] = Field(default=None, alias="seenAt")
    seen_millis: int = Field(default=0, alias="seenMillis")
    lat: Optional[float] = None
    lng: Optional[float] = None
    unc: Optional[float] = None
    n_samples: Optional[int] = Field(default=None, alias="nSamples")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
