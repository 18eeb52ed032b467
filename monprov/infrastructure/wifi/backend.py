"""
Network Backend - Kernel interface/radio access boundary.
=========================================================

Every query and mutation the provisioner performs against the kernel's
interface table goes through a ``NetBackend``. Queries never raise: a missing
device reads as ``None`` / an empty list. Mutations raise
``InterfaceOperationError`` carrying the operation, the target and the
kernel's complaint, so callers can decide whether to fall through.

Implementations:
- IwBackend (iw_backend.py): drives ``iw`` and ``ip``
- MockNetBackend: in-memory interface table with fault injection
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ...domain.models import InterfaceMode, PhysicalRadio, RadioInterface, normalize_phy

logger = logging.getLogger(__name__)


class InterfaceOperationError(Exception):
    """A kernel mutation (link state, mode, rename, create, delete) failed."""

    def __init__(self, operation: str, target: str, detail: str = "") -> None:
        self.operation = operation
        self.target = target
        self.detail = detail
        message = f"{operation} {target} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NetBackend(ABC):
    """Structured access to wireless interfaces and PHYs."""

    @abstractmethod
    async def list_interfaces(self) -> list[RadioInterface]:
        """All wireless interfaces, in the kernel's enumeration order."""

    @abstractmethod
    async def get_interface(self, name: str) -> RadioInterface | None:
        """Current state of one wireless interface, or None if absent."""

    @abstractmethod
    async def interface_exists(self, name: str) -> bool:
        """Whether any network device (wireless or not) has this name."""

    @abstractmethod
    async def list_phys(self) -> list[PhysicalRadio]:
        """All PHYs with their monitor capability, in enumeration order."""

    @abstractmethod
    async def set_link(self, name: str, up: bool) -> None:
        """Set administrative state."""

    @abstractmethod
    async def set_mode(self, name: str, mode: InterfaceMode) -> None:
        """Change the interface type in place."""

    @abstractmethod
    async def rename(self, name: str, new_name: str) -> None:
        """Rename a network device."""

    @abstractmethod
    async def delete(self, name: str) -> None:
        """Delete a (virtual) wireless interface."""

    @abstractmethod
    async def create(self, phy: str, name: str, mode: InterfaceMode) -> None:
        """Create a new virtual interface of ``mode`` on ``phy``."""


class MockNetBackend(NetBackend):
    """
    In-memory kernel interface table for tests and offline runs.

    Fault injection:
        fail_ops: operation names that raise InterfaceOperationError
            ("set_link", "set_mode", "rename", "delete", "create")
        silent_rename_failure: rename reports success but changes nothing
        sticky_managed: set_mode reports success but the mode stays managed
    """

    def __init__(
        self,
        interfaces: list[RadioInterface] | None = None,
        phys: list[PhysicalRadio] | None = None,
        fail_ops: set[str] | None = None,
        silent_rename_failure: bool = False,
        sticky_managed: bool = False,
    ) -> None:
        self._interfaces: dict[str, RadioInterface] = {}
        for iface in interfaces or []:
            self._interfaces[iface.name] = iface.model_copy()
        self._phys: dict[str, PhysicalRadio] = {p.name: p.model_copy() for p in phys or []}
        self.fail_ops = set(fail_ops or ())
        self.silent_rename_failure = silent_rename_failure
        self.sticky_managed = sticky_managed
        self.calls: list[tuple[str, ...]] = []

    @property
    def mutations(self) -> list[tuple[str, ...]]:
        """Recorded calls that change the interface table."""
        reads = {"list_interfaces", "get_interface", "interface_exists", "list_phys"}
        return [call for call in self.calls if call[0] not in reads]

    def snapshot(self) -> dict[str, tuple[str, str | None, bool | None]]:
        """Interface table as ``name -> (mode, phy, is_up)``."""
        return {
            name: (iface.mode.value, iface.phy, iface.is_up)
            for name, iface in self._interfaces.items()
        }

    def _check(self, operation: str, target: str) -> None:
        if operation in self.fail_ops:
            raise InterfaceOperationError(operation, target, "injected failure")

    def _require(self, operation: str, name: str) -> RadioInterface:
        iface = self._interfaces.get(name)
        if iface is None:
            raise InterfaceOperationError(operation, name, "No such device")
        return iface

    async def list_interfaces(self) -> list[RadioInterface]:
        self.calls.append(("list_interfaces",))
        return [iface.model_copy() for iface in self._interfaces.values()]

    async def get_interface(self, name: str) -> RadioInterface | None:
        self.calls.append(("get_interface", name))
        iface = self._interfaces.get(name)
        return iface.model_copy() if iface else None

    async def interface_exists(self, name: str) -> bool:
        self.calls.append(("interface_exists", name))
        return name in self._interfaces

    async def list_phys(self) -> list[PhysicalRadio]:
        self.calls.append(("list_phys",))
        return [phy.model_copy() for phy in self._phys.values()]

    async def set_link(self, name: str, up: bool) -> None:
        self.calls.append(("set_link", name, "up" if up else "down"))
        self._check("set_link", name)
        self._require("set_link", name).is_up = up

    async def set_mode(self, name: str, mode: InterfaceMode) -> None:
        self.calls.append(("set_mode", name, mode.value))
        self._check("set_mode", name)
        iface = self._require("set_mode", name)
        if not self.sticky_managed:
            iface.mode = mode

    async def rename(self, name: str, new_name: str) -> None:
        self.calls.append(("rename", name, new_name))
        self._check("rename", name)
        iface = self._require("rename", name)
        if new_name in self._interfaces and new_name != name:
            raise InterfaceOperationError("rename", name, "File exists")
        if self.silent_rename_failure:
            return
        del self._interfaces[name]
        iface.name = new_name
        self._interfaces[new_name] = iface

    async def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        self._check("delete", name)
        self._require("delete", name)
        del self._interfaces[name]

    async def create(self, phy: str, name: str, mode: InterfaceMode) -> None:
        phy = normalize_phy(phy) or phy
        self.calls.append(("create", phy, name, mode.value))
        self._check("create", name)
        if phy not in self._phys:
            raise InterfaceOperationError("create", name, f"{phy} not found")
        if name in self._interfaces:
            raise InterfaceOperationError("create", name, "File exists")
        created_mode = InterfaceMode.MANAGED if self.sticky_managed else mode
        self._interfaces[name] = RadioInterface(name=name, mode=created_mode, phy=phy, is_up=False)
        logger.debug("Mock created %s on %s (%s)", name, phy, created_mode.value)
