"""
Monitor-Mode Provisioning.

Discovers a monitor-capable radio and leaves the canonical interface
(wlan1mon) in monitor mode and up:
- Discoverer: hints, then scans
- Mode Switcher: in-place conversion, then virtual interface
- Verifier: read-back after every switch
- Activator: link up and report
"""

from .activator import Activator
from .discoverer import Discoverer, Discovery
from .provisioner import (
    DEFAULT_ACCESS_POINT,
    DEFAULT_CANONICAL,
    MAX_ATTEMPTS,
    MonitorProvisioner,
    ProvisionOutcome,
    ProvisionReport,
)
from .switcher import (
    InPlaceConversion,
    StrategyResult,
    StrategyStatus,
    SwitchStrategy,
    VirtualInterface,
    default_strategies,
)
from .verifier import Verification, Verifier

__all__ = [
    # Driver
    "MonitorProvisioner",
    "ProvisionOutcome",
    "ProvisionReport",
    "DEFAULT_CANONICAL",
    "DEFAULT_ACCESS_POINT",
    "MAX_ATTEMPTS",
    # Components
    "Discoverer",
    "Discovery",
    "Verifier",
    "Verification",
    "Activator",
    # Strategies
    "SwitchStrategy",
    "InPlaceConversion",
    "VirtualInterface",
    "StrategyResult",
    "StrategyStatus",
    "default_strategies",
]
