"""Error taxonomy raised by the device store."""
from __future__ import annotations

from typing import Any, Optional


class RegistryError(Exception):
    """Base class for registry failures."""

    def __init__(self, message: str, detail: Any = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.message} (field: {self.field})"
        return self.message


class ValidationError(RegistryError):
    """Missing field, malformed capabilities document or duplicate id."""


class NotFoundError(RegistryError):
    """The referenced device id does not exist."""

    def __init__(self, device_id: Any):
        super().__init__(f"Device with id '{device_id}' not found", detail={"id": device_id})
        self.device_id = device_id
