"""monprov Domain Layer - interface, radio and hint models."""

from .models import (
    InterfaceMode,
    PhysicalRadio,
    ProvisioningHints,
    RadioInterface,
    normalize_phy,
)

__all__ = [
    "InterfaceMode",
    "PhysicalRadio",
    "ProvisioningHints",
    "RadioInterface",
    "normalize_phy",
]
