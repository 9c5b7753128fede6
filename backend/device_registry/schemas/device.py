from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.device import DEVICE_TYPE_MAX_LENGTH, INT_MAX, NAME_MAX_LENGTH
from ..services.capabilities import normalize_capabilities, parse_capabilities


class DeviceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[int] = Field(default=None, gt=0, le=INT_MAX)
    node_id: int = Field(ge=0, le=INT_MAX)
    endpoint_id: int = Field(ge=0, le=INT_MAX)
    device_type: Optional[str] = Field(default=None, max_length=DEVICE_TYPE_MAX_LENGTH)
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    capabilities: Any

    @field_validator("capabilities", mode="before")
    @classmethod
    def _capabilities(cls, v):
        if v is None:
            raise ValueError("capabilities is required")
        return normalize_capabilities(v)


class DeviceUpdate(BaseModel):
    """Partial change; only fields the caller sets are applied."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=NAME_MAX_LENGTH)
    device_type: Optional[str] = Field(default=None, max_length=DEVICE_TYPE_MAX_LENGTH)
    capabilities: Any = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        if v is None:
            raise ValueError("name cannot be cleared")
        return v

    @field_validator("capabilities", mode="before")
    @classmethod
    def _capabilities(cls, v):
        if v is None:
            raise ValueError("capabilities cannot be cleared")
        return normalize_capabilities(v)


class DeviceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    node_id: int
    endpoint_id: int
    device_type: Optional[str] = None
    name: str
    capabilities: str

    def capability_map(self) -> dict:
        return parse_capabilities(self.capabilities)
