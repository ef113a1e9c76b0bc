"""Disk slot to block device mapping"""

import logging
import re
from typing import Dict, List, Optional

from .config import DiskMonitorConfig
from .errors import ConfigurationError, ExternalToolFailure, TransientIOError
from .led import Led, SYSFS_LED_PATH
from .models import DiskTable, ModelLayout, SlotBinding
from .system import BaseSystem

LED_NAMES = ["disk1", "disk2", "disk3", "disk4", "disk5", "disk6", "disk7", "disk8"]

MAPPING_METHODS = ("ata", "hctl", "serial")

DEFAULT_KEY_ORDERS = {
    "ata": [f"ata{port}" for port in range(1, 9)],
    "hctl": [f"{host}:0:0:0" for host in range(8)],
}

# Models without an explicit order use the default one
BUILTIN_LAYOUTS = [
    ModelLayout(
        prefix="DXP6800",
        ata=["ata3", "ata4", "ata5", "ata6", "ata1", "ata2"],
        hctl=["2:0:0:0", "3:0:0:0", "4:0:0:0", "5:0:0:0", "0:0:0:0", "1:0:0:0"],
    ),
    ModelLayout(prefix="DX4600"),
    ModelLayout(prefix="DX4700"),
    ModelLayout(prefix="DXP2800"),
    ModelLayout(prefix="DXP4800"),
    ModelLayout(prefix="DXP8800"),
]

ATA_PORT_PATTERN = re.compile(r"ata\d+")


class DiskMapper:
    """Maps the slot LEDs to the block devices in those slots"""

    def __init__(self, config: DiskMonitorConfig, system: BaseSystem,
                 layouts: Optional[List[ModelLayout]] = None, led_path: str = SYSFS_LED_PATH,
                 logger: Optional[logging.Logger] = None):
        """Initialize disk mapper

        Args:
            config: Disk monitor configuration
            system: Signal source for block devices and the product name
            layouts: Extra model layouts, consulted before the built-in ones
            led_path: Directory holding the LED class devices
            logger: Logger instance
        """
        self.config = config
        self.system = system
        self.layouts = list(layouts or []) + BUILTIN_LAYOUTS
        self.led_path = led_path
        self.logger = logger or logging.getLogger(__name__)

    @property
    def method(self) -> str:
        return self.config.mapping_method

    def find_layout(self, product_name: Optional[str]) -> Optional[ModelLayout]:
        """Find the layout for a product name

        Args:
            product_name: Hardware product name, may be None

        Returns:
            First matching layout, None for unknown models
        """
        if not product_name:
            return None

        for layout in self.layouts:
            if layout.matches(product_name):
                return layout

        return None

    def key_order(self) -> List[str]:
        """Get the addressing keys in slot order

        Returns:
            Keys for disk1, disk2, ... (may be shorter than the LED list)

        Raises:
            ConfigurationError: For an unknown method or a serial mapping without serials
        """
        if self.method not in MAPPING_METHODS:
            raise ConfigurationError(f"Unsupported mapping method: {self.method}")

        if self.method == "serial":
            if not self.config.disk_serial:
                raise ConfigurationError("Serial mapping method requires DISK_SERIAL to be set")
            return list(self.config.disk_serial)

        order = list(DEFAULT_KEY_ORDERS[self.method])
        product_name = self.system.product_name()

        if product_name is None:
            self.logger.warning(
                f"Cannot detect the device model (is dmidecode installed?). Using the default "
                f"{self.method} order, please check it maps to your disk slots correctly."
            )
            return order

        layout = self.find_layout(product_name)
        if layout is None:
            self.logger.warning(
                f"Unknown model {product_name}. Using the default {self.method} order, "
                f"please check it maps to your disk slots correctly."
            )
            return order

        self.logger.info(f"Found UGREEN {layout.prefix} series ({product_name})")
        return layout.order_for(self.method) or order

    def enumerate_disks(self) -> Dict[str, str]:
        """Discover block devices keyed by the configured addressing scheme

        Returns:
            Dictionary of addressing key to device name
        """
        self.logger.info(f"Enumerating disks based on {self.method}...")
        devices = {}

        if self.method == "ata":
            for name, link in self.system.block_device_links().items():
                match = ATA_PORT_PATTERN.search(link)
                if match:
                    devices[match.group(0)] = name
        else:
            try:
                output = self.system.lsblk_scsi(self.method)
            except ExternalToolFailure as e:
                self.logger.error(f"Failed to list SCSI devices: {e}")
                return devices

            for line in output.splitlines():
                if "sata" not in line:
                    continue
                fields = line.split()
                if len(fields) >= 2:
                    devices[fields[1]] = fields[0]

        for key, device in devices.items():
            self.logger.debug(f"{self.method} {key} >> {device}")

        return devices

    def initialize_slots(self, table: DiskTable) -> List[SlotBinding]:
        """Initialize every slot LED and register the bound disks

        Args:
            table: Disk table that receives the LED/device bindings

        Returns:
            One binding per existing slot LED, unbound slots have no device

        Raises:
            ConfigurationError: Before any LED is touched, if the mapping cannot be built
        """
        order = self.key_order()
        devices = self.enumerate_disks()
        bindings = []

        for index, led_name in enumerate(LED_NAMES):
            led = Led(led_name, self.led_path)
            if not led.exists():
                continue

            binding = SlotBinding(slot=index + 1, led_name=led_name,
                                  key=order[index] if index < len(order) else "")

            try:
                led.set_trigger("oneshot")
            except TransientIOError as e:
                self.logger.warning(f"Failed to set trigger for {led_name}: {e}")
                continue

            try:
                led.set_invert(1)
                led.set_delay_on(100)
                led.set_delay_off(100)
                led.set_color(self.config.color_disk_health)
                led.set_brightness(self.config.brightness_disk_leds)
            except TransientIOError as e:
                self.logger.warning(f"Failed to initialize {led_name}: {e}")

            device = devices.get(binding.key) if binding.key else None
            if not device or not self.system.block_device_present(device):
                # No disk installed in this slot
                self._turn_off(led)
                bindings.append(binding)
                continue

            try:
                table.register(led_name, device)
            except ValueError as e:
                self.logger.warning(f"Not monitoring {led_name}: {e}")
                self._turn_off(led)
                bindings.append(binding)
                continue

            binding.device = device
            bindings.append(binding)
            self.logger.info(f"Mapped {self.method} -> {binding.key} -> {device} ({led_name})")

        return bindings

    def _turn_off(self, led: Led) -> None:
        try:
            led.set_brightness(0)
            led.set_trigger("none")
        except TransientIOError as e:
            self.logger.warning(f"Failed to turn off {led.name}: {e}")
