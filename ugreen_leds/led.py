"""sysfs LED handle"""

import os
from typing import Union

from .errors import TransientIOError
from .models import RGB

SYSFS_LED_PATH = "/sys/class/leds"


class Led:
    """A single LED under /sys/class/leds

    Every attribute is a plain text file. Writes and reads that fail are
    raised as TransientIOError so callers can skip the current tick.
    """

    def __init__(self, name: str, base_path: str = SYSFS_LED_PATH):
        """Initialize the LED handle

        Args:
            name: LED name (e.g. disk1, netdev)
            base_path: Directory holding the LED class devices
        """
        self.name = name
        self.path = os.path.join(base_path, name)

    def __repr__(self) -> str:
        return f"Led({self.name!r})"

    def exists(self) -> bool:
        return os.path.isdir(self.path)

    def write(self, attribute: str, value: Union[str, int]) -> None:
        """Write a value to an LED attribute

        Raises:
            TransientIOError: If the attribute cannot be written
        """
        try:
            with open(os.path.join(self.path, attribute), "w") as f:
                f.write(str(value))
        except OSError as e:
            raise TransientIOError(f"Failed to write {attribute} of LED {self.name}: {e}") from e

    def read(self, attribute: str) -> str:
        """Read an LED attribute as stripped text

        Raises:
            TransientIOError: If the attribute cannot be read
        """
        try:
            with open(os.path.join(self.path, attribute), "r") as f:
                return f.read().strip()
        except OSError as e:
            raise TransientIOError(f"Failed to read {attribute} of LED {self.name}: {e}") from e

    def set_trigger(self, trigger: str) -> None:
        self.write("trigger", trigger)

    def set_invert(self, invert: int) -> None:
        self.write("invert", int(invert))

    def set_delay_on(self, delay_ms: int) -> None:
        self.write("delay_on", int(delay_ms))

    def set_delay_off(self, delay_ms: int) -> None:
        self.write("delay_off", int(delay_ms))

    def set_color(self, color: RGB) -> None:
        self.write("color", str(color))

    def get_color(self) -> RGB:
        return RGB.parse(self.read("color"))

    def set_brightness(self, brightness: int) -> None:
        self.write("brightness", int(brightness))

    def shot(self) -> None:
        """Fire a single blink in oneshot trigger mode"""
        self.write("shot", 1)

    # netdev trigger attributes

    def set_device_name(self, interface: str) -> None:
        self.write("device_name", interface)

    def set_link(self, link: int) -> None:
        self.write("link", int(link))

    def set_tx(self, tx: int) -> None:
        self.write("tx", int(tx))

    def set_rx(self, rx: int) -> None:
        self.write("rx", int(rx))

    def set_interval(self, interval_ms: int) -> None:
        self.write("interval", int(interval_ms))
