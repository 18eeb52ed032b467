"""WiFi infrastructure - kernel interface/radio backends."""

from .backend import InterfaceOperationError, MockNetBackend, NetBackend
from .iw_backend import IwBackend, parse_iw_dev, parse_iw_dev_info, parse_iw_list, parse_link_is_up

__all__ = [
    # Backends
    "NetBackend",
    "IwBackend",
    "MockNetBackend",
    "InterfaceOperationError",
    # Parsers
    "parse_iw_dev",
    "parse_iw_dev_info",
    "parse_iw_list",
    "parse_link_is_up",
]
