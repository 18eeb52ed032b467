from __future__ import annotations

import asyncio
import importlib.metadata as md
import logging
import subprocess
import sys
from pathlib import Path

import typer
from rich.console import Console

from .config import MonprovConfig, apply_env_hints, load_config, resolve_config_path
from .domain.models import ProvisioningHints
from .infrastructure.provision import MonitorProvisioner, ProvisionOutcome
from .infrastructure.wifi import IwBackend, NetBackend
from .tools.systemd_unit import install_unit, remove_unit, render_unit

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="monprov - monitor-mode interface provisioner")
console = Console()
logger = logging.getLogger("monprov.cli")

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _configure_logging(cfg: MonprovConfig | None, verbose: bool = False) -> None:
    level_name = "DEBUG" if verbose else (cfg.logging.level if cfg else "INFO")
    level = logging.getLevelNamesMapping()[level_name]
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger().setLevel(level)


def _make_backend(cfg: MonprovConfig) -> NetBackend:
    return IwBackend(iw_path=cfg.tools.iw_path, ip_path=cfg.tools.ip_path)


def _load_for_run(path: Path) -> tuple[MonprovConfig | None, str | None]:
    """Config for boot-time commands: a missing file means defaults."""
    if not path.exists():
        return MonprovConfig(), None
    try:
        return load_config(path), None
    except (OSError, ValueError) as exc:
        return None, str(exc)


@app.callback()
def main() -> None:
    """Entry point for `monprov` command."""


@app.command()
def version() -> None:
    """Print version information."""
    try:
        dist_version = md.version("monprov")
        console.print(f"monprov {dist_version}")
    except md.PackageNotFoundError:
        from . import __version__
        console.print(f"monprov {__version__}")
    raise typer.Exit(code=0)


@app.command()
def provision(
    config: Path = typer.Option(Path("configs/monprov.yml"), "--config", "-c"),
    interface: str | None = typer.Option(None, "--interface", "-i", help="Preferred source interface"),
    phy: str | None = typer.Option(None, "--phy", help="Preferred PHY (phy1, phy#1 or 1)"),
    settle: bool = typer.Option(True, "--settle/--no-settle", help="Wait for devices to settle first"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Put a radio into monitor mode as the canonical interface. Always exits 0."""
    resolved = resolve_config_path(config)
    cfg, error = _load_for_run(resolved)
    _configure_logging(cfg, verbose)

    if cfg is None:
        logger.error("Config %s invalid, skipping provisioning: %s", resolved, error)
        console.print({"outcome": ProvisionOutcome.SKIPPED.value, "message": "invalid configuration"})
        raise typer.Exit(code=0)

    if resolved.exists():
        logger.info("Using config: %s", resolved)
    else:
        logger.info("No config at %s, using defaults", resolved)

    try:
        cfg = apply_env_hints(cfg)
        base = cfg.provisioning_hints()
        hints = ProvisioningHints(interface=interface or base.interface, phy=phy or base.phy)
    except ValueError as exc:
        logger.error("Invalid provisioning hints, skipping provisioning: %s", exc)
        console.print({"outcome": ProvisionOutcome.SKIPPED.value, "message": "invalid hints"})
        raise typer.Exit(code=0) from exc

    provisioner = MonitorProvisioner(
        _make_backend(cfg),
        hints=hints,
        canonical=cfg.interfaces.canonical,
        access_point=cfg.interfaces.access_point,
        settle_delay_secs=cfg.provisioner.settle_delay_secs if settle else 0.0,
    )
    try:
        report = asyncio.run(provisioner.run())
    except Exception:
        logger.exception("Provisioning aborted unexpectedly")
        console.print({"outcome": ProvisionOutcome.FAILED.value, "message": "unexpected error"})
        raise typer.Exit(code=0)

    console.print(report.to_dict())
    raise typer.Exit(code=report.exit_code)


@app.command()
def status(
    config: Path = typer.Option(Path("configs/monprov.yml"), "--config", "-c"),
) -> None:
    """Show wireless interfaces and PHYs as the provisioner sees them."""
    resolved = resolve_config_path(config)
    cfg, error = _load_for_run(resolved)
    if cfg is None:
        console.print(f"Config validation failed: {error}")
        raise typer.Exit(code=1)

    async def _collect() -> tuple[list, list]:
        backend = _make_backend(cfg)
        names = [iface.name for iface in await backend.list_interfaces()]
        interfaces = []
        for name in names:
            iface = await backend.get_interface(name)
            if iface is not None:
                interfaces.append(iface)
        return interfaces, await backend.list_phys()

    interfaces, phys = asyncio.run(_collect())

    def _role(name: str) -> str | None:
        if name == cfg.interfaces.access_point:
            return "access-point"
        if name == cfg.interfaces.canonical:
            return "canonical"
        return None

    console.print({
        "canonical": cfg.interfaces.canonical,
        "access_point": cfg.interfaces.access_point,
        "interfaces": [
            {
                "name": iface.name,
                "mode": iface.mode.value,
                "phy": iface.phy,
                "up": iface.is_up,
                "role": _role(iface.name),
            }
            for iface in interfaces
        ],
        "phys": [{"name": p.name, "monitor": p.supports_monitor} for p in phys],
        "canonical_ready": any(
            iface.name == cfg.interfaces.canonical and iface.is_monitor for iface in interfaces
        ),
    })


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/monprov.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg = apply_env_hints(load_config(resolved))
    except (OSError, ValueError) as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- canonical: {cfg.interfaces.canonical}")
    console.print(f"- access point: {cfg.interfaces.access_point}")
    console.print(f"- hints: interface={cfg.hints.interface} phy={cfg.hints.phy}")
    console.print(f"- unit: {cfg.unit_path}")


@app.command()
def config_which(path: Path = typer.Option(Path("configs/monprov.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    resolved = resolve_config_path(path)
    console.print(str(resolved))


@app.command()
def systemd(
    action: str = typer.Argument(..., help="show|install|remove|status"),
    config: Path = typer.Option(Path("/etc/monprov/monprov.yml"), "--config", "-c"),
) -> None:
    """Manage the oneshot unit that provisions the interface at boot."""
    resolved = resolve_config_path(config)
    cfg, error = _load_for_run(resolved)
    if cfg is None:
        console.print(f"Config validation failed: {error}")
        raise typer.Exit(code=1)
    unit_name = cfg.systemd.unit_name

    if action == "show":
        console.print(render_unit(cfg, resolved), markup=False, highlight=False)
    elif action == "install":
        try:
            unit = install_unit(cfg, resolved)
        except OSError as exc:
            console.print(f"[yellow]Install failed:[/yellow] {exc}")
            raise typer.Exit(code=1) from exc
        subprocess.run(["systemctl", "daemon-reload"], check=False)
        subprocess.run(["systemctl", "enable", unit_name], check=False)
        console.print(f"[green]Installed and enabled {unit}[/green]")
    elif action == "remove":
        subprocess.run(["systemctl", "disable", unit_name], check=False)
        try:
            removed = remove_unit(cfg)
        except OSError as exc:
            console.print(f"[yellow]Remove failed:[/yellow] {exc}")
            raise typer.Exit(code=1) from exc
        subprocess.run(["systemctl", "daemon-reload"], check=False)
        console.print(f"[green]Removed {cfg.unit_path}[/green]" if removed else "Unit not installed")
    elif action == "status":
        subprocess.run(["systemctl", "status", unit_name, "--no-pager"], check=False)
    else:
        console.print("[yellow]Unknown action[/yellow]")
        raise typer.Exit(code=2)


def launch() -> None:
    """Entry point when executed as a module/script."""
    cli()


# Click command export (entrypoint)
cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    launch()
