"""Verifier - reads back the canonical interface after a switch attempt."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...domain.models import InterfaceMode, RadioInterface
from ..wifi.backend import NetBackend

logger = logging.getLogger(__name__)


@dataclass
class Verification:
    interface: RadioInterface | None
    expected_phy: str | None = None

    @property
    def phy_matches(self) -> bool:
        if self.interface is None:
            return False
        if self.expected_phy is None or self.interface.phy is None:
            return True
        return self.interface.phy == self.expected_phy

    @property
    def ok(self) -> bool:
        return self.interface is not None and self.interface.is_monitor and self.phy_matches

    @property
    def observed_mode(self) -> str:
        if self.interface is None:
            return "absent"
        return self.interface.mode.value


class Verifier:
    def __init__(self, backend: NetBackend, canonical: str) -> None:
        self.backend = backend
        self.canonical = canonical

    async def verify(self, expected_phy: str | None = None, quiet: bool = False) -> Verification:
        """Re-query the kernel; never trusts what a strategy reported.

        With ``expected_phy`` set, a monitor interface owned by another PHY
        does not count.
        """
        result = Verification(await self.backend.get_interface(self.canonical), expected_phy)
        if quiet:
            return result
        if result.ok:
            logger.info("%s is in %s mode", self.canonical, InterfaceMode.MONITOR.value)
        elif result.interface is not None and not result.phy_matches:
            logger.warning(
                "%s belongs to %s, expected %s",
                self.canonical, result.interface.phy, expected_phy,
            )
        else:
            logger.warning("%s not in monitor mode (observed: %s)", self.canonical, result.observed_mode)
        return result
