"""ZFS pool member to slot LED mapping"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import ExternalToolFailure
from .models import DiskTable
from .system import BaseSystem

FAILURE_STATES = ("OFFLINE", "FAULTED", "UNAVAIL", "REMOVED", "CORRUPT")
HEALTHY_STATES = ("ONLINE", "AVAIL", "DEGRADED")

SCSI_PREFIX = "sd"
DEVICE_MAPPER_PREFIX = "dm"

PARTITION_SUFFIX = re.compile(r"[0-9]+$")


@dataclass
class PoolDevice:
    """One device line of the pool status listing"""

    name: str                        # Device as reported (e.g. sda1, dm-0)
    state: str = ""                  # Reported state (e.g. ONLINE)

    @property
    def failed(self) -> bool:
        return self.state in FAILURE_STATES


def strip_partition(name: str) -> str:
    """Remove a trailing partition number (sda1 -> sda)"""
    return PARTITION_SUFFIX.sub("", name)


def parse_zpool_status(output: str) -> List[PoolDevice]:
    """Extract the sd*/dm* device lines from ``zpool status -L`` output

    Args:
        output: Raw command output

    Returns:
        Devices in listing order
    """
    devices = []

    for line in output.splitlines():
        line = line.strip()
        if not line.startswith((SCSI_PREFIX, DEVICE_MAPPER_PREFIX)):
            continue

        fields = line.split()
        devices.append(PoolDevice(name=fields[0], state=fields[1] if len(fields) > 1 else ""))

    return devices


class PoolMapper:
    """Maps pool-reported device names back to the slot LEDs"""

    def __init__(self, table: DiskTable, system: BaseSystem, debug: bool = False,
                 logger: Optional[logging.Logger] = None):
        """Initialize pool mapper

        Args:
            table: Disk table built by the DiskMapper
            system: Signal source for the pool status and dm slaves
            debug: Log every mapping decision
            logger: Logger instance
        """
        self.table = table
        self.system = system
        self.debug = debug
        self.logger = logger or logging.getLogger(__name__)

        self.pool_to_led: Dict[str, str] = {}

    def base_device(self, name: str) -> Optional[str]:
        """Resolve a pool device name to its physical block device

        Args:
            name: Device name from the pool status

        Returns:
            Base block device, None if it cannot be resolved
        """
        if name.startswith(SCSI_PREFIX):
            return strip_partition(name)

        if name.startswith(DEVICE_MAPPER_PREFIX):
            # Encrypted devices sit on top of the real disk
            slaves = self.system.dm_slaves(name)
            if not slaves:
                self.logger.debug(f"No underlying device found for {name}")
                return None
            return slaves[0]

        self.logger.info(f"Unsupported zpool device type {name}")
        return None

    def build(self) -> Dict[str, str]:
        """Build the pool device to LED mapping

        Returns:
            Dictionary of pool device name (raw and base) to LED name
        """
        if self.debug:
            self.logger.info("Enumerating zpool devices...")

        try:
            devices = parse_zpool_status(self.system.zpool_status())
        except ExternalToolFailure as e:
            self.logger.warning(f"Failed to build zpool mapping: {e}")
            return self.pool_to_led

        for device in devices:
            base = self.base_device(device.name)
            if base is None:
                continue

            led_name = self.table.led_for_device(base)
            if led_name is None:
                continue

            self.pool_to_led[device.name] = led_name
            if device.name != base:
                self.pool_to_led[base] = led_name

            if self.debug:
                self.logger.info(f"zpool device {device.name} >> {base} >> LED: {led_name}")

        return self.pool_to_led

    def led_for(self, name: str) -> Optional[str]:
        """Find the LED for a pool device

        Tries the raw name, then the name without partition number, then the
        disk table directly.
        """
        led_name = self.pool_to_led.get(name)
        if led_name:
            return led_name

        base = strip_partition(name)
        return self.pool_to_led.get(base) or self.table.led_for_device(base)
