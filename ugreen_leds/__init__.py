"""
UGREEN LED Monitor

This package keeps the disk slot and network LEDs of a UGREEN NAS in sync
with SMART, ZFS pool, device presence, I/O activity and link state.
"""

from .config import Config, ConfigManager
from .disk_monitor import DiskMonitor
from .models import RGB, DiskHealth
from .network_monitor import NetworkMonitor
from .service import LedService

__version__ = "1.0.0"
__all__ = ["Config", "ConfigManager", "DiskHealth", "DiskMonitor", "LedService", "NetworkMonitor", "RGB"]
