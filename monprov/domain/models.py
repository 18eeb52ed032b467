"""monprov Domain Models - live kernel state and run inputs."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PHY_RE = re.compile(r"^(?:phy#?)?(\d+)$")


def normalize_phy(value: str | None) -> str | None:
    """Normalize PHY identifiers: ``phy#1``, ``1`` and ``phy1`` all become ``phy1``.

    Names that do not look like an index (renamed PHYs) are kept as-is.
    Empty strings are treated as unset.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    match = _PHY_RE.match(value)
    if match:
        return f"phy{match.group(1)}"
    return value


class InterfaceMode(str, Enum):
    """Wireless interface modes the provisioner distinguishes."""

    MANAGED = "managed"
    MONITOR = "monitor"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> InterfaceMode:
        """Map a kernel type string (``iw`` output) to a mode."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class RadioInterface(BaseModel):
    """A wireless network device as currently seen by the kernel."""

    name: str
    mode: InterfaceMode = InterfaceMode.UNKNOWN
    phy: str | None = None
    is_up: bool | None = None  # None = administrative state not queried

    @field_validator("phy")
    @classmethod
    def _normalize_phy(cls, value: str | None) -> str | None:
        return normalize_phy(value)

    @property
    def is_monitor(self) -> bool:
        return self.mode == InterfaceMode.MONITOR


class PhysicalRadio(BaseModel):
    """A radio (wiphy) owning one or more logical interfaces."""

    name: str
    supports_monitor: bool = False

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return normalize_phy(value) or value


class ProvisioningHints(BaseModel):
    """Caller-supplied preferences, fixed for the whole run."""

    model_config = ConfigDict(frozen=True)

    interface: str | None = Field(default=None)
    phy: str | None = Field(default=None)

    @field_validator("interface")
    @classmethod
    def _blank_interface(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("phy")
    @classmethod
    def _normalize_phy(cls, value: str | None) -> str | None:
        return normalize_phy(value)
