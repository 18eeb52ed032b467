from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .domain.models import ProvisioningHints, normalize_phy

ENV_INTERFACE_HINT = "MONITOR_IFACE"
ENV_PHY_HINT = "MONITOR_PHY"
ENV_CONFIG_PATH = "MONPROV_CONFIG"

# Linux IFNAMSIZ is 16 including the terminating NUL
_IFNAME_RE = re.compile(r"^[^\s/:]{1,15}$")


def _validate_ifname(value: str) -> str:
    if not _IFNAME_RE.match(value):
        raise ValueError(f"invalid interface name: {value!r}")
    return value


class InterfaceNamesConfig(BaseModel):
    canonical: str = Field("wlan1mon")
    access_point: str = Field("wlan0")

    @field_validator("canonical", "access_point")
    @classmethod
    def _validate_names(cls, value: str) -> str:
        return _validate_ifname(value)

    @model_validator(mode="after")
    def _distinct(self) -> InterfaceNamesConfig:
        if self.canonical == self.access_point:
            raise ValueError("canonical interface cannot be the access point interface")
        return self


class HintsConfig(BaseModel):
    interface: str | None = Field(None)
    phy: str | None = Field(None)

    @field_validator("interface")
    @classmethod
    def _validate_interface(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return _validate_ifname(value.strip())

    @field_validator("phy")
    @classmethod
    def _normalize_phy(cls, value: str | None) -> str | None:
        return normalize_phy(value)


class ProvisionerConfig(BaseModel):
    settle_delay_secs: float = Field(2.0, ge=0.0, le=120.0)


class ToolsConfig(BaseModel):
    iw_path: str = Field("/usr/sbin/iw")
    ip_path: str = Field("/sbin/ip")


class LoggingConfig(BaseModel):
    level: str = Field("INFO")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level


class SystemdConfig(BaseModel):
    unit_name: str = Field("wlan1mon.service")
    unit_dir: Path = Field(Path("/etc/systemd/system"))

    @field_validator("unit_name")
    @classmethod
    def _validate_unit_name(cls, value: str) -> str:
        if not value.endswith(".service") or "/" in value:
            raise ValueError("unit_name must be a bare *.service name")
        return value


class MonprovConfig(BaseModel):
    interfaces: InterfaceNamesConfig = Field(default_factory=InterfaceNamesConfig)
    hints: HintsConfig = Field(default_factory=HintsConfig)
    provisioner: ProvisionerConfig = Field(default_factory=ProvisionerConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    systemd: SystemdConfig = Field(default_factory=SystemdConfig)

    @property
    def unit_path(self) -> Path:
        return self.systemd.unit_dir / self.systemd.unit_name

    def provisioning_hints(self) -> ProvisioningHints:
        return ProvisioningHints(interface=self.hints.interface, phy=self.hints.phy)


def load_config(path: Path) -> MonprovConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    try:
        return MonprovConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def apply_env_hints(cfg: MonprovConfig, environ: Mapping[str, str] | None = None) -> MonprovConfig:
    """Overlay MONITOR_IFACE / MONITOR_PHY on the configured hints.

    Unset or empty variables leave the configured value alone.
    """
    env = os.environ if environ is None else environ
    updates: dict[str, Any] = {}
    iface = (env.get(ENV_INTERFACE_HINT) or "").strip()
    phy = (env.get(ENV_PHY_HINT) or "").strip()
    if iface:
        updates["interface"] = iface
    if phy:
        updates["phy"] = phy
    if not updates:
        return cfg
    hints = HintsConfig.model_validate({**cfg.hints.model_dump(), **updates})
    return cfg.model_copy(update={"hints": hints})


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/monprov, /opt/monprov/configs, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get(ENV_CONFIG_PATH)
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/monprov/monprov.yml"), Path("/opt/monprov/configs/monprov.yml"), Path("configs/monprov.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/monprov.yml").resolve()
