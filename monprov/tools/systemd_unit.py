from __future__ import annotations

import shutil
import sys
from pathlib import Path

from ..config import ENV_INTERFACE_HINT, ENV_PHY_HINT, MonprovConfig


def resolve_monprov_bin() -> str:
    return shutil.which("monprov") or str(Path(sys.executable).parent / "monprov")


def render_unit(cfg: MonprovConfig, config_path: Path, monprov_bin: str | None = None) -> str:
    """Oneshot unit that provisions the monitor interface once per boot.

    Restart=no: a missing dongle must not turn into a restart loop.
    """
    exec_bin = monprov_bin or resolve_monprov_bin()
    canonical = cfg.interfaces.canonical
    lines = [
        "[Unit]",
        f"Description=Set up {canonical} in monitor mode",
        "After=network.target systemd-udev-settle.service",
        "",
        "[Service]",
        "Type=oneshot",
        f"Environment={ENV_INTERFACE_HINT}={cfg.hints.interface or ''}",
        f"Environment={ENV_PHY_HINT}={cfg.hints.phy or ''}",
        f"EnvironmentFile=-/etc/default/{cfg.systemd.unit_name.removesuffix('.service')}",
        f"ExecStart={exec_bin} provision -c {config_path}",
        "RemainAfterExit=yes",
        "Restart=no",
        "",
        "[Install]",
        "WantedBy=multi-user.target",
        "",
    ]
    return "\n".join(lines)


def install_unit(cfg: MonprovConfig, config_path: Path, monprov_bin: str | None = None) -> Path:
    unit = cfg.unit_path
    unit.parent.mkdir(parents=True, exist_ok=True)
    unit.write_text(render_unit(cfg, config_path, monprov_bin), encoding="utf-8")
    return unit


def remove_unit(cfg: MonprovConfig) -> bool:
    unit = cfg.unit_path
    if not unit.exists():
        return False
    unit.unlink()
    return True
