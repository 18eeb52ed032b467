"""Activator - brings the canonical interface administratively up."""

from __future__ import annotations

import logging

from ..wifi.backend import InterfaceOperationError, NetBackend

logger = logging.getLogger(__name__)


class Activator:
    def __init__(self, backend: NetBackend, canonical: str) -> None:
        self.backend = backend
        self.canonical = canonical

    async def activate(self) -> bool:
        """Set the interface up. Safe to call when it already is.

        Returns False (after logging) if the kernel refused; the caller
        still treats the run as complete.
        """
        try:
            await self.backend.set_link(self.canonical, up=True)
        except InterfaceOperationError as e:
            logger.warning("Could not bring %s up: %s", self.canonical, e)
            return False
        return True
