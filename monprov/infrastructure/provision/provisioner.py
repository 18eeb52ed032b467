"""
Monitor Provisioner - one boot-time run from discovery to activation.
=====================================================================

Drives Discoverer -> strategies (each followed by the Verifier) ->
Activator and returns a ProvisionReport. A run never raises for hardware
or kernel problems: absence of a monitor-capable radio is a skip, and
exhausting both strategies is a failed report, not an exception.

Usage:
    provisioner = MonitorProvisioner(IwBackend(), hints=ProvisioningHints(interface="wlan1"))
    report = await provisioner.run()
    print(report.outcome.value, report.source_interface, report.phy)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ...domain.models import ProvisioningHints
from ..wifi.backend import NetBackend
from .activator import Activator
from .discoverer import Discoverer, Discovery
from .switcher import StrategyResult, StrategyStatus, SwitchStrategy, default_strategies
from .verifier import Verification, Verifier

logger = logging.getLogger(__name__)

DEFAULT_CANONICAL = "wlan1mon"
DEFAULT_ACCESS_POINT = "wlan0"

# Path A plus one Path B fallback; more only hammers a radio that cannot do it
MAX_ATTEMPTS = 2


class ProvisionOutcome(str, Enum):
    """How a run ended. None of these is a process failure."""

    PROVISIONED = "provisioned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ProvisionReport:
    """What a run did, for logs and the CLI."""

    outcome: ProvisionOutcome
    canonical: str
    source_interface: str | None = None
    phy: str | None = None
    strategy: str | None = None  # "existing" when nothing had to change
    attempts: list[StrategyResult] = field(default_factory=list)
    is_up: bool = False
    final_mode: str = "absent"
    message: str = ""
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def exit_code(self) -> int:
        # Boot units must never fail because the dongle is missing
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "canonical": self.canonical,
            "source_interface": self.source_interface,
            "phy": self.phy,
            "strategy": self.strategy,
            "attempts": [
                {"strategy": a.strategy, "status": a.status.value, "detail": a.detail}
                for a in self.attempts
            ],
            "is_up": self.is_up,
            "final_mode": self.final_mode,
            "message": self.message,
            "finished_at": self.finished_at.isoformat(),
        }


class MonitorProvisioner:
    """
    Provisions the canonical monitor-mode interface.

    Hints and names are fixed at construction; every decision re-reads
    kernel state through the backend.
    """

    def __init__(
        self,
        backend: NetBackend,
        hints: ProvisioningHints | None = None,
        canonical: str = DEFAULT_CANONICAL,
        access_point: str = DEFAULT_ACCESS_POINT,
        settle_delay_secs: float = 0.0,
        strategies: list[SwitchStrategy] | None = None,
    ) -> None:
        self.backend = backend
        self.hints = hints or ProvisioningHints()
        self.canonical = canonical
        self.access_point = access_point
        self.settle_delay_secs = settle_delay_secs
        self.discoverer = Discoverer(backend, canonical, access_point)
        self.verifier = Verifier(backend, canonical)
        self.activator = Activator(backend, canonical)
        self.strategies = strategies if strategies is not None else default_strategies(backend, canonical)

    async def run(self) -> ProvisionReport:
        if self.canonical == self.access_point:
            logger.error(
                "Canonical interface %s is the access point interface; refusing to provision",
                self.canonical,
            )
            return self._report(ProvisionOutcome.SKIPPED, message="canonical name reserved for access point")

        if self.settle_delay_secs > 0:
            logger.info("Waiting %.1fs for wireless devices to settle", self.settle_delay_secs)
            await asyncio.sleep(self.settle_delay_secs)

        discovery = await self.discoverer.discover(self.hints)
        if discovery is None:
            logger.warning("No PHY with monitor support found; skipping")
            return self._report(ProvisionOutcome.SKIPPED, message="no PHY with monitor support found")

        existing = await self.verifier.verify(expected_phy=self.hints.phy, quiet=True)
        if existing.ok:
            logger.info("%s already in monitor mode on %s", self.canonical, existing.interface.phy or discovery.phy)
            return await self._activate(discovery, "existing", [], existing)

        attempts: list[StrategyResult] = []
        for strategy in self.strategies[:MAX_ATTEMPTS]:
            logger.info(
                "Trying %s (source iface: %s, phy: %s)",
                strategy.name, discovery.source or "none", discovery.phy,
            )
            result = await strategy.apply(discovery)
            attempts.append(result)

            if result.status == StrategyStatus.SKIP:
                logger.warning("[%s] %s; skipping", strategy.name, result.detail)
                return self._report(
                    ProvisionOutcome.SKIPPED, discovery, attempts=attempts, message=result.detail,
                )

            if not result.ok:
                continue

            verification = await self.verifier.verify(expected_phy=self.hints.phy)
            if verification.ok:
                return await self._activate(discovery, strategy.name, attempts, verification)

        final = await self.verifier.verify(expected_phy=self.hints.phy, quiet=True)
        logger.error(
            "Failed to provision %s (source iface: %s, phy: %s, tried: %s, final state: %s)",
            self.canonical,
            discovery.source or "none",
            discovery.phy,
            ", ".join(f"{a.strategy}={a.status.value}" for a in attempts) or "nothing",
            final.observed_mode,
        )
        return self._report(
            ProvisionOutcome.FAILED,
            discovery,
            attempts=attempts,
            final_mode=final.observed_mode,
            message="canonical interface not in monitor mode after all attempts",
        )

    async def _activate(
        self,
        discovery: Discovery,
        strategy: str,
        attempts: list[StrategyResult],
        verification: Verification,
    ) -> ProvisionReport:
        is_up = await self.activator.activate()
        logger.info(
            "%s set to monitor (source iface: %s, phy: %s)",
            self.canonical, discovery.source or "none", discovery.phy,
        )
        return self._report(
            ProvisionOutcome.PROVISIONED,
            discovery,
            strategy=strategy,
            attempts=attempts,
            is_up=is_up,
            final_mode=verification.observed_mode,
            message=f"{self.canonical} set to monitor",
        )

    def _report(
        self,
        outcome: ProvisionOutcome,
        discovery: Discovery | None = None,
        **kwargs: Any,
    ) -> ProvisionReport:
        return ProvisionReport(
            outcome=outcome,
            canonical=self.canonical,
            source_interface=discovery.source if discovery else None,
            phy=discovery.phy if discovery else None,
            **kwargs,
        )
