"""Data models shared by the maintenance components."""

from .common import EndpointUpdate, Result
from .config import CONFIG_KEYS, Configuration

__all__ = [
    "CONFIG_KEYS",
    "Configuration",
    "EndpointUpdate",
    "Result",
]
