"""
Mode Switcher - strategies that realize the canonical monitor interface.
========================================================================

Each strategy is one attempt and returns a StrategyResult instead of
raising. The provisioner tries them in order, verifying after each:

- InPlaceConversion ("in-place"): down, set type monitor, rename.
  Keeps whatever the driver attached to the existing interface.
- VirtualInterface ("virtual"): delete any stale canonical interface,
  then add a fresh monitor interface on the PHY.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from ...domain.models import InterfaceMode
from ..wifi.backend import InterfaceOperationError, NetBackend
from .discoverer import Discovery

logger = logging.getLogger(__name__)


class StrategyStatus(str, Enum):
    """Outcome of a single strategy attempt."""

    SUCCESS = "success"          # kernel accepted every required step
    RECOVERABLE = "recoverable"  # try the next strategy
    SKIP = "skip"                # nothing further can work on this hardware


@dataclass
class StrategyResult:
    strategy: str
    status: StrategyStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == StrategyStatus.SUCCESS


class SwitchStrategy(ABC):
    """One way of producing the canonical monitor interface."""

    name: str = "strategy"

    def __init__(self, backend: NetBackend, canonical: str) -> None:
        self.backend = backend
        self.canonical = canonical

    @abstractmethod
    async def apply(self, discovery: Discovery) -> StrategyResult:
        """Attempt the switch. Must not raise on kernel failures."""

    def _result(self, status: StrategyStatus, detail: str = "") -> StrategyResult:
        return StrategyResult(strategy=self.name, status=status, detail=detail)


class InPlaceConversion(SwitchStrategy):
    """Path A: convert the source interface and rename it."""

    name = "in-place"

    async def apply(self, discovery: Discovery) -> StrategyResult:
        source = discovery.source
        if not source:
            return self._result(StrategyStatus.RECOVERABLE, "no source interface")

        try:
            await self.backend.set_link(source, up=False)
        except InterfaceOperationError as e:
            logger.warning("[%s] %s (continuing)", self.name, e)

        try:
            await self.backend.set_mode(source, InterfaceMode.MONITOR)
        except InterfaceOperationError as e:
            logger.warning("[%s] %s", self.name, e)
            return self._result(StrategyStatus.RECOVERABLE, str(e))

        if source != self.canonical:
            try:
                await self.backend.rename(source, self.canonical)
            except InterfaceOperationError as e:
                # The verifier sees the missing canonical name and falls back
                logger.warning("[%s] %s", self.name, e)

        return self._result(StrategyStatus.SUCCESS, f"{source} set to monitor")


class VirtualInterface(SwitchStrategy):
    """Path B: recreate the canonical interface on the PHY as monitor."""

    name = "virtual"

    async def apply(self, discovery: Discovery) -> StrategyResult:
        phy = discovery.phy

        for radio in await self.backend.list_phys():
            if radio.name == phy and not radio.supports_monitor:
                return self._result(StrategyStatus.SKIP, f"{phy} does not advertise monitor mode")

        try:
            await self.backend.delete(self.canonical)
        except InterfaceOperationError as e:
            logger.debug("[%s] %s (ignored)", self.name, e)

        try:
            await self.backend.create(phy, self.canonical, InterfaceMode.MONITOR)
        except InterfaceOperationError as e:
            logger.warning("[%s] %s", self.name, e)
            return self._result(StrategyStatus.RECOVERABLE, str(e))

        return self._result(StrategyStatus.SUCCESS, f"created {self.canonical} on {phy}")


def default_strategies(backend: NetBackend, canonical: str) -> list[SwitchStrategy]:
    """Strategies in the order they are attempted."""
    return [
        InPlaceConversion(backend, canonical),
        VirtualInterface(backend, canonical),
    ]
