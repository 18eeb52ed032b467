"""
Interface/PHY Discoverer.

Resolves the source interface and owning PHY to provision from, using the
caller's hints first and kernel scans second. Read-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...domain.models import PhysicalRadio, ProvisioningHints
from ..wifi.backend import NetBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Discovery:
    """Resolved provisioning candidate."""

    source: str | None  # None when only a PHY could be found
    phy: str
    source_reason: str = ""
    phy_reason: str = ""


class Discoverer:
    """
    Finds ``(source interface, phy)`` for the Mode Switcher.

    Order, first success wins:
        1. interface hint, if it exists
        2. first wireless interface that is not the access point
           (on the hinted PHY, when a PHY hint is set)
        3. the canonical interface itself (re-run)
    PHY: hint, else the source's owner, else first monitor-capable PHY.

    The access-point interface is never returned as a source. Radios the
    kernel lists without monitor support are never returned at all, and a
    source owned by a PHY other than the resolved one is dropped.
    """

    def __init__(self, backend: NetBackend, canonical: str, access_point: str) -> None:
        self.backend = backend
        self.canonical = canonical
        self.access_point = access_point

    async def discover(self, hints: ProvisioningHints) -> Discovery | None:
        """Return a Discovery, or None when no usable PHY can be resolved."""
        radios = {radio.name: radio for radio in await self.backend.list_phys()}
        if radios and not any(radio.supports_monitor for radio in radios.values()):
            logger.warning(
                "No PHY advertises monitor mode (listed: %s)",
                ", ".join(sorted(radios)),
            )
            return None

        source, source_reason = await self._resolve_source(hints, radios)
        phy, phy_reason = await self._resolve_phy(hints, source, radios)

        if not phy:
            logger.warning(
                "No PHY with monitor support found (source interface: %s)",
                source or "none",
            )
            return None

        if not _capable(phy, radios):
            logger.warning("%s (%s) does not advertise monitor mode; leaving it alone", phy, phy_reason)
            return None

        if source:
            owner = await self._owner(source)
            if owner and owner != phy:
                logger.info("Not converting %s: owned by %s, not %s", source, owner, phy)
                source, source_reason = None, ""

        logger.info(
            "Discovered source interface %s (%s), phy %s (%s)",
            source or "none", source_reason or "-", phy, phy_reason,
        )
        return Discovery(source=source, phy=phy, source_reason=source_reason, phy_reason=phy_reason)

    async def _owner(self, name: str) -> str | None:
        iface = await self.backend.get_interface(name)
        return iface.phy if iface else None

    async def _resolve_source(
        self,
        hints: ProvisioningHints,
        radios: dict[str, PhysicalRadio],
    ) -> tuple[str | None, str]:
        if hints.interface:
            if hints.interface == self.access_point:
                logger.warning(
                    "Ignoring interface hint %s: reserved for the access point",
                    hints.interface,
                )
            elif not await self.backend.interface_exists(hints.interface):
                logger.info("Hinted interface %s not present, scanning", hints.interface)
            elif not _capable(await self._owner(hints.interface), radios):
                logger.warning("Ignoring interface hint %s: its PHY has no monitor mode", hints.interface)
            else:
                return hints.interface, "hint"

        for iface in await self.backend.list_interfaces():
            if iface.name == self.access_point or not _capable(iface.phy, radios):
                continue
            # with a PHY hint, other radios are left alone
            if hints.phy and iface.phy != hints.phy:
                continue
            return iface.name, "scan"

        if await self.backend.interface_exists(self.canonical):
            return self.canonical, "canonical"

        return None, ""

    async def _resolve_phy(
        self,
        hints: ProvisioningHints,
        source: str | None,
        radios: dict[str, PhysicalRadio],
    ) -> tuple[str | None, str]:
        if hints.phy:
            return hints.phy, "hint"

        if source:
            owner = await self._owner(source)
            if owner:
                return owner, f"owner of {source}"

        for radio in radios.values():
            if radio.supports_monitor:
                return radio.name, "capability scan"

        return None, ""


def _capable(phy: str | None, radios: dict[str, PhysicalRadio]) -> bool:
    """Unlisted PHYs are given the benefit of the doubt."""
    radio = radios.get(phy) if phy else None
    return radio is None or radio.supports_monitor
