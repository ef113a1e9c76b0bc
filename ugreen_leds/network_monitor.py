"""Network link monitoring for the netdev LED"""

import logging
import threading
from typing import Optional

from .config import NetworkMonitorConfig
from .errors import ExternalToolFailure, ResourceUnavailable, TransientIOError
from .led import Led, SYSFS_LED_PATH
from .models import RGB
from .system import BaseSystem

DEFAULT_CHECK_INTERVAL = 60


def parse_default_gateway(output: str) -> Optional[str]:
    """Find the gateway of the first default route in ``ip route`` output"""
    for line in output.splitlines():
        if "default" not in line:
            continue
        fields = line.split()
        for i, token in enumerate(fields[:-1]):
            if token == "via":
                return fields[i + 1]
    return None


def link_speed_color(config: NetworkMonitorConfig, speed: Optional[int]) -> RGB:
    """Color for a link speed tier

    2000, 5000 and 10000 fall back to the purple default (5000 and 10000
    first try each other), the remaining tiers and unknown speeds fall back
    to the normal color.
    """
    colors = config.link_colors

    if speed in (100, 1000, 2500):
        return colors.get(speed, config.color_normal)
    if speed == 2000:
        return colors.get(2000, config.color_link_purple_default)
    if speed == 5000:
        return colors.get(5000) or colors.get(10000) or config.color_link_purple_default
    if speed == 10000:
        return colors.get(10000) or colors.get(5000) or config.color_link_purple_default

    return config.color_normal


def dynamic_color(config: NetworkMonitorConfig, speed: Optional[int]) -> RGB:
    """Interpolate between the low and high colors by link speed"""
    low = float(config.dynamic_speed_low)
    high = float(config.dynamic_speed_high)

    if speed is None or high == low:
        return config.color_normal

    fraction = min(max((speed - low) / (high - low), 0.0), 1.0)
    start = config.dynamic_color_low
    end = config.dynamic_color_high

    return RGB(
        int(start.r + fraction * (end.r - start.r)),
        int(start.g + fraction * (end.g - start.g)),
        int(start.b + fraction * (end.b - start.b)),
    )


class NetworkMonitor:
    """Drives one netdev LED from the state of one interface"""

    def __init__(self, config: NetworkMonitorConfig, interface: str, system: BaseSystem,
                 led_name: str = "netdev", led_path: str = SYSFS_LED_PATH,
                 logger: Optional[logging.Logger] = None):
        """Initialize the network monitor

        Args:
            config: Network monitor configuration
            interface: Interface to watch (e.g. eth0)
            system: Signal source for link speed, routes and ping
            led_name: LED owned by this monitor
            led_path: Directory holding the LED class devices
            logger: Logger instance
        """
        self.config = config
        self.interface = interface
        self.system = system
        self.led = Led(led_name, led_path)
        self.logger = logger or logging.getLogger(__name__)

        self.gateway_reachable = True

    @property
    def enabled(self) -> bool:
        return self.config.any_check_enabled

    def setup(self) -> None:
        """Put the LED into netdev trigger mode for the interface

        Raises:
            ResourceUnavailable: If the LED does not exist
            TransientIOError: If an LED attribute cannot be written
        """
        if not self.led.exists():
            raise ResourceUnavailable(f"LED {self.led.name} does not exist")

        self.led.set_trigger("netdev")
        self.led.set_device_name(self.interface)
        self.led.set_link(1)
        self.led.set_tx(self.config.blink_tx)
        self.led.set_rx(self.config.blink_rx)
        self.led.set_interval(self.config.blink_interval)
        self.led.set_color(self.config.color_normal)
        self.led.set_brightness(self.config.brightness_led)

        self.logger.info(f"Monitoring {self.interface} on LED {self.led.name}")

    def read_link_speed(self) -> Optional[int]:
        try:
            return self.system.link_speed(self.interface)
        except TransientIOError as e:
            self.logger.debug(f"Link speed unavailable: {e}")
            return None

    def check_gateway(self) -> bool:
        """Probe the default gateway, unreachable if none is configured"""
        try:
            gateway = parse_default_gateway(self.system.ip_route())
        except ExternalToolFailure as e:
            self.logger.warning(f"Failed to get gateway: {e}")
            return False

        if gateway is None:
            self.logger.warning("Failed to get gateway: no default gateway found")
            return False

        try:
            return self.system.ping(gateway)
        except ExternalToolFailure as e:
            self.logger.warning(f"Failed to ping gateway {gateway}: {e}")
            return False

    def normal_color(self) -> RGB:
        if self.config.check_link_speed_dynamic:
            return dynamic_color(self.config, self.read_link_speed())
        if self.config.check_link_speed:
            return link_speed_color(self.config, self.read_link_speed())
        return self.config.color_normal

    def check(self) -> RGB:
        """Run one check and write the resulting color

        Returns:
            The color that was chosen
        """
        if self.config.check_gateway_connectivity:
            reachable = self.check_gateway()
            if reachable != self.gateway_reachable:
                state = "reachable again" if reachable else "unreachable"
                self.logger.info(f"Gateway {state} from {self.interface}")
            self.gateway_reachable = reachable

        if self.gateway_reachable:
            color = self.normal_color()
        else:
            color = self.config.color_gateway_unreachable

        try:
            self.led.set_color(color)
        except TransientIOError as e:
            self.logger.warning(f"Cannot update LED for {self.interface}: {e}")

        return color

    def run(self, stop_event: threading.Event) -> None:
        """Check the interface until ``stop_event`` is set

        Raises:
            ResourceUnavailable: If the LED does not exist
            TransientIOError: If the LED cannot be set up
        """
        if not self.enabled:
            self.logger.info(f"No network checks enabled for {self.interface}")
            return

        self.setup()
        interval = self.config.check_interval if self.config.check_interval > 0 else DEFAULT_CHECK_INTERVAL

        while not stop_event.wait(interval):
            try:
                self.check()
            except Exception as e:
                self.logger.exception(f"Error checking {self.interface}: {e}")

        self.logger.debug(f"Stopped monitoring {self.interface}")
