"""
iw/ip Backend - NetBackend over the iproute2 and iw binaries.
=============================================================

All command-line invocation and output parsing for the provisioner lives
here. Parsers are plain functions so they can be tested against captured
command output.

Commands used:
    iw dev                                   list interfaces
    iw dev <if> info                         mode and owning wiphy
    iw list                                  PHYs and supported modes
    ip link show dev <if>                    existence, administrative state
    ip link set <if> up|down
    ip link set <if> name <new>
    iw dev <if> set type <mode>
    iw dev <if> del
    iw phy <phy> interface add <if> type <mode>
"""

from __future__ import annotations

import asyncio
import logging
import re

from ...domain.models import InterfaceMode, PhysicalRadio, RadioInterface
from .backend import InterfaceOperationError, NetBackend

logger = logging.getLogger(__name__)

DEFAULT_IW_PATH = "/usr/sbin/iw"
DEFAULT_IP_PATH = "/sbin/ip"

_LINK_FLAGS_RE = re.compile(r"^\d+:\s+(\S+?)(?:@\S+)?:\s+<([^>]*)>")


def parse_iw_dev(output: str) -> list[RadioInterface]:
    """Parse ``iw dev`` into interfaces, keeping the listing order."""
    interfaces: list[RadioInterface] = []
    current: dict | None = None
    phy: str | None = None

    def flush() -> None:
        if current and current.get("name"):
            interfaces.append(RadioInterface(**current))

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith("phy#"):
            flush()
            current = None
            phy = line
        elif line.startswith("Interface "):
            flush()
            current = {"name": line.split()[1], "phy": phy}
        elif line.startswith("Unnamed/non-netdev"):
            # P2P-device and similar wdevs have no netdev to provision
            flush()
            current = None
        elif line.startswith("type ") and current is not None:
            current["mode"] = InterfaceMode.parse(line.split()[1])

    flush()
    return interfaces


def parse_iw_dev_info(output: str) -> RadioInterface | None:
    """Parse ``iw dev <if> info``."""
    data: dict = {}
    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("Interface "):
            data["name"] = line.split()[1]
        elif line.startswith("type "):
            data["mode"] = InterfaceMode.parse(line.split()[1])
        elif line.startswith("wiphy "):
            data["phy"] = f"phy{line.split()[1]}"
    if not data.get("name"):
        return None
    return RadioInterface(**data)


def parse_iw_list(output: str) -> list[PhysicalRadio]:
    """Parse ``iw list`` into PHYs and their monitor capability.

    Both "Supported interface modes" and "software interface modes" count:
    a PHY listing monitor in either can host a monitor interface.
    """
    phys: list[PhysicalRadio] = []
    name: str | None = None
    monitor = False
    in_modes = False

    for raw in output.splitlines():
        line = raw.strip()

        if line.startswith("Wiphy "):
            if name:
                phys.append(PhysicalRadio(name=name, supports_monitor=monitor))
            name = line.split()[1]
            monitor = False
            in_modes = False
            continue

        if line == "Supported interface modes:" or line.startswith("software interface modes"):
            in_modes = True
            continue

        if in_modes:
            if line.startswith("*"):
                if line.lstrip("* ").strip().lower() == "monitor":
                    monitor = True
            else:
                in_modes = False

    if name:
        phys.append(PhysicalRadio(name=name, supports_monitor=monitor))
    return phys


def parse_link_is_up(output: str) -> bool | None:
    """Administrative state from ``ip link show dev <if>`` (UP flag)."""
    for line in output.splitlines():
        match = _LINK_FLAGS_RE.match(line.strip())
        if match:
            return "UP" in match.group(2).split(",")
    return None


class IwBackend(NetBackend):
    """
    NetBackend implemented with ``iw`` and ``ip`` subprocesses.

    Usage:
        backend = IwBackend()
        for iface in await backend.list_interfaces():
            print(iface.name, iface.mode.value, iface.phy)
    """

    def __init__(self, iw_path: str = DEFAULT_IW_PATH, ip_path: str = DEFAULT_IP_PATH) -> None:
        self.iw_path = iw_path
        self.ip_path = ip_path

    async def _run(self, *cmd: str) -> tuple[int, str, str]:
        """Run a command and return (returncode, stdout, stderr)."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except FileNotFoundError:
            logger.error("%s not found - install the iw/iproute2 packages", cmd[0])
            return 127, "", f"{cmd[0]}: command not found"
        except OSError as e:
            logger.error("Failed to run %s: %s", cmd[0], e)
            return 126, "", str(e)

        returncode = proc.returncode if proc.returncode is not None else -1
        return (
            returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace").strip(),
        )

    async def _mutate(self, operation: str, target: str, *cmd: str) -> None:
        returncode, _, stderr = await self._run(*cmd)
        if returncode != 0:
            raise InterfaceOperationError(operation, target, stderr or f"exit status {returncode}")
        logger.debug("%s %s ok", operation, target)

    async def list_interfaces(self) -> list[RadioInterface]:
        returncode, stdout, stderr = await self._run(self.iw_path, "dev")
        if returncode != 0:
            logger.error("iw dev failed: %s", stderr)
            return []
        return parse_iw_dev(stdout)

    async def get_interface(self, name: str) -> RadioInterface | None:
        returncode, stdout, _ = await self._run(self.iw_path, "dev", name, "info")
        if returncode != 0:
            return None
        iface = parse_iw_dev_info(stdout)
        if iface is None:
            return None

        returncode, stdout, _ = await self._run(self.ip_path, "link", "show", "dev", name)
        if returncode == 0:
            iface.is_up = parse_link_is_up(stdout)
        return iface

    async def interface_exists(self, name: str) -> bool:
        returncode, _, _ = await self._run(self.ip_path, "link", "show", "dev", name)
        return returncode == 0

    async def list_phys(self) -> list[PhysicalRadio]:
        returncode, stdout, stderr = await self._run(self.iw_path, "list")
        if returncode != 0:
            logger.error("iw list failed: %s", stderr)
            return []
        return parse_iw_list(stdout)

    async def set_link(self, name: str, up: bool) -> None:
        state = "up" if up else "down"
        await self._mutate(f"link {state}", name, self.ip_path, "link", "set", name, state)

    async def set_mode(self, name: str, mode: InterfaceMode) -> None:
        await self._mutate(
            f"set type {mode.value}", name,
            self.iw_path, "dev", name, "set", "type", mode.value,
        )

    async def rename(self, name: str, new_name: str) -> None:
        await self._mutate(
            f"rename to {new_name}", name,
            self.ip_path, "link", "set", name, "name", new_name,
        )

    async def delete(self, name: str) -> None:
        await self._mutate("delete", name, self.iw_path, "dev", name, "del")

    async def create(self, phy: str, name: str, mode: InterfaceMode) -> None:
        await self._mutate(
            f"create on {phy}", name,
            self.iw_path, "phy", phy, "interface", "add", name, "type", mode.value,
        )
