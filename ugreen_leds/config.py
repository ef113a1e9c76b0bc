"""Configuration management for the LED monitor"""

import io
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
import yaml
from dotenv import dotenv_values

from .models import RGB, ModelLayout

DEFAULT_CONFIG_FILES = [
    "/boot/config/plugins/ugreenleds-driver/settings.cfg",  # unRAID plugin settings
    "/etc/ugreen-leds.conf",
]
UNRAID_MARKER = "/etc/unraid-version"

LINK_SPEED_TIERS = (100, 1000, 2000, 2500, 5000, 10000)


def _without_bare_keys(values: Mapping[str, Optional[str]]) -> Dict[str, str]:
    # Lines without "=" are reported with a None value
    return {key: value for key, value in values.items() if value is not None}


def parse_shell_config(text: str) -> Dict[str, str]:
    """Parse shell-style ``KEY=VALUE`` assignments

    Handles quoting, ``export`` prefixes and ``#`` comments, including
    comments after an unquoted value.

    Args:
        text: File content

    Returns:
        Dictionary of raw string values
    """
    return _without_bare_keys(dotenv_values(stream=io.StringIO(text)))


def load_shell_config(path: str) -> Dict[str, str]:
    """Parse a shell-style config file, see parse_shell_config"""
    return _without_bare_keys(dotenv_values(path))


class _Values:
    """Typed lookups over raw config values, falling back to defaults"""

    def __init__(self, values: Mapping[str, str]):
        self.values = values

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, "") or default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value:
            return value == "true"
        return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key))
        except ValueError:
            return default

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get(key))
        except ValueError:
            return default

    def get_rgb(self, key: str, default: Optional[RGB]) -> Optional[RGB]:
        value = self.get(key)
        if value:
            return RGB.parse(value)
        return default

    def get_list(self, key: str) -> List[str]:
        return self.get(key).split()


@dataclass
class DiskMonitorConfig:
    """Settings of the disk monitor"""

    enable: bool = True
    mapping_method: str = "ata"                  # ata, hctl or serial
    disk_serial: List[str] = field(default_factory=list)
    check_smart: bool = True
    check_smart_interval: int = 360              # seconds
    led_refresh_interval: float = 0.1            # seconds
    check_zpool: bool = False
    check_zpool_interval: int = 5                # seconds
    debug_zpool: bool = False
    check_disk_online_interval: int = 5          # seconds
    color_disk_health: RGB = RGB(255, 255, 255)
    color_disk_unavail: RGB = RGB(255, 0, 0)
    color_disk_standby: RGB = RGB(0, 0, 255)
    color_zpool_fail: RGB = RGB(255, 0, 0)
    color_smart_fail: RGB = RGB(255, 0, 0)
    brightness_disk_leds: int = 255
    standby_mon_path: str = "/usr/bin/ugreen-check-standby"
    standby_check_interval: int = 1              # seconds
    blink_mon_path: str = "/usr/bin/ugreen-blink-disk"
    slot_layout_file: str = "/etc/ugreen-leds-layouts.yaml"

    @classmethod
    def from_values(cls, values: Mapping[str, str], environ: Optional[Mapping[str, str]] = None,
                    check_smart_default: bool = True) -> "DiskMonitorConfig":
        """Create DiskMonitorConfig from raw config values

        Args:
            values: Parsed config file values
            environ: Environment used as fallback for DISK_SERIAL
            check_smart_default: Default for CHECK_SMART when the key is unset
        """
        v = _Values(values)
        d = cls()
        environ = os.environ if environ is None else environ

        serials = v.get("DISK_SERIAL") or environ.get("DISK_SERIAL", "")

        return cls(
            enable=v.get_bool("DISK_MONITOR_ENABLE", d.enable),
            mapping_method=v.get("MAPPING_METHOD", d.mapping_method),
            disk_serial=serials.split(),
            check_smart=v.get_bool("CHECK_SMART", check_smart_default),
            check_smart_interval=v.get_int("CHECK_SMART_INTERVAL", d.check_smart_interval),
            led_refresh_interval=v.get_float("LED_REFRESH_INTERVAL", d.led_refresh_interval),
            check_zpool=v.get_bool("CHECK_ZPOOL", d.check_zpool),
            check_zpool_interval=v.get_int("CHECK_ZPOOL_INTERVAL", d.check_zpool_interval),
            debug_zpool=v.get_bool("DEBUG_ZPOOL", d.debug_zpool),
            check_disk_online_interval=v.get_int("CHECK_DISK_ONLINE_INTERVAL",
                                                 d.check_disk_online_interval),
            color_disk_health=v.get_rgb("COLOR_DISK_HEALTH", d.color_disk_health),
            color_disk_unavail=v.get_rgb("COLOR_DISK_UNAVAIL", d.color_disk_unavail),
            color_disk_standby=v.get_rgb("COLOR_DISK_STANDBY", d.color_disk_standby),
            color_zpool_fail=v.get_rgb("COLOR_ZPOOL_FAIL", d.color_zpool_fail),
            color_smart_fail=v.get_rgb("COLOR_SMART_FAIL", d.color_smart_fail),
            brightness_disk_leds=v.get_int("BRIGHTNESS_DISK_LEDS", d.brightness_disk_leds),
            standby_mon_path=v.get("STANDBY_MON_PATH", d.standby_mon_path),
            standby_check_interval=v.get_int("STANDBY_CHECK_INTERVAL", d.standby_check_interval),
            blink_mon_path=v.get("BLINK_MON_PATH", d.blink_mon_path),
            slot_layout_file=v.get("SLOT_LAYOUT_FILE", d.slot_layout_file),
        )


@dataclass
class NetworkMonitorConfig:
    """Settings shared by all network monitors"""

    enable: bool = False
    interfaces: List[str] = field(default_factory=list)
    led_names: List[str] = field(default_factory=list)
    color_normal: RGB = RGB(255, 255, 255)
    color_gateway_unreachable: RGB = RGB(255, 0, 0)
    color_link_purple_default: RGB = RGB(128, 0, 128)
    link_colors: Dict[int, RGB] = field(default_factory=dict)  # only tiers set in the config
    brightness_led: int = 255
    check_interval: int = 60                     # seconds
    check_gateway_connectivity: bool = False
    check_link_speed: bool = False
    check_link_speed_dynamic: bool = False
    dynamic_color_low: RGB = RGB(255, 0, 0)
    dynamic_color_high: RGB = RGB(0, 255, 0)
    dynamic_speed_low: int = 0                   # Mbps
    dynamic_speed_high: int = 10000              # Mbps
    blink_tx: int = 1
    blink_rx: int = 1
    blink_interval: int = 200                    # milliseconds

    @property
    def any_check_enabled(self) -> bool:
        return self.check_gateway_connectivity or self.check_link_speed or self.check_link_speed_dynamic

    def led_for_interface(self, index: int) -> Optional[str]:
        """LED owned by the interface at ``index``

        Without an explicit NETDEV_LED_NAMES entry only the first interface
        gets the ``netdev`` LED.
        """
        if index < len(self.led_names):
            return self.led_names[index]
        if index == 0:
            return "netdev"
        return None

    @classmethod
    def from_values(cls, values: Mapping[str, str]) -> "NetworkMonitorConfig":
        """Create NetworkMonitorConfig from raw config values"""
        v = _Values(values)
        d = cls()

        interfaces = v.get_list("NETWORK_INTERFACES")
        link_colors = {}
        for speed in LINK_SPEED_TIERS:
            color = v.get_rgb(f"COLOR_NETDEV_LINK_{speed}", None)
            if color is not None:
                link_colors[speed] = color

        return cls(
            enable=len(interfaces) > 0,
            interfaces=interfaces,
            led_names=v.get_list("NETDEV_LED_NAMES"),
            color_normal=v.get_rgb("COLOR_NETDEV_NORMAL", d.color_normal),
            color_gateway_unreachable=v.get_rgb("COLOR_NETDEV_GATEWAY_UNREACHABLE",
                                                d.color_gateway_unreachable),
            color_link_purple_default=v.get_rgb("COLOR_NETDEV_LINK_PURPLE_DEFAULT",
                                                d.color_link_purple_default),
            link_colors=link_colors,
            brightness_led=v.get_int("BRIGHTNESS_NETDEV_LED", d.brightness_led),
            check_interval=v.get_int("CHECK_NETDEV_INTERVAL", d.check_interval),
            check_gateway_connectivity=v.get_bool("CHECK_GATEWAY_CONNECTIVITY",
                                                  d.check_gateway_connectivity),
            check_link_speed=v.get_bool("CHECK_LINK_SPEED", d.check_link_speed),
            check_link_speed_dynamic=v.get_bool("CHECK_LINK_SPEED_DYNAMIC", d.check_link_speed_dynamic),
            dynamic_color_low=v.get_rgb("CHECK_LINK_SPEED_DYNAMIC_COLOR_LOW", d.dynamic_color_low),
            dynamic_color_high=v.get_rgb("CHECK_LINK_SPEED_DYNAMIC_COLOR_HIGH", d.dynamic_color_high),
            dynamic_speed_low=v.get_int("CHECK_LINK_SPEED_DYNAMIC_SPEED_LOW", d.dynamic_speed_low),
            dynamic_speed_high=v.get_int("CHECK_LINK_SPEED_DYNAMIC_SPEED_HIGH", d.dynamic_speed_high),
            blink_tx=v.get_int("NETDEV_BLINK_TX", d.blink_tx),
            blink_rx=v.get_int("NETDEV_BLINK_RX", d.blink_rx),
            blink_interval=v.get_int("NETDEV_BLINK_INTERVAL", d.blink_interval),
        )


@dataclass
class Config:
    """Complete service configuration"""

    disk: DiskMonitorConfig = field(default_factory=DiskMonitorConfig)
    network: NetworkMonitorConfig = field(default_factory=NetworkMonitorConfig)


class ConfigManager:
    """Loads the shell-style config files and the YAML slot layouts"""

    def __init__(self, config_files: Optional[List[str]] = None, logger: Optional[logging.Logger] = None,
                 environ: Optional[Mapping[str, str]] = None, unraid_marker: str = UNRAID_MARKER):
        """Initialize configuration manager

        Args:
            config_files: Config files in increasing priority
            logger: Logger instance
            environ: Environment for DISK_SERIAL, defaults to os.environ
            unraid_marker: File whose presence disables SMART checks by default
        """
        self.config_files = [os.path.expanduser(path) for path in
                             (DEFAULT_CONFIG_FILES if config_files is None else config_files)]
        self.logger = logger or logging.getLogger(__name__)
        self.environ = os.environ if environ is None else environ
        self.unraid_marker = unraid_marker

        self.values: Dict[str, str] = {}
        self.config = Config()
        self.layouts: List[ModelLayout] = []

        self.load()

    def load(self) -> None:
        """Load all config files, later files override earlier ones"""
        self.values = {}

        for config_file in self.config_files:
            if not os.path.exists(config_file):
                self.logger.debug(f"Configuration file {config_file} not found")
                continue

            try:
                self.values.update(load_shell_config(config_file))
                self.logger.info(f"Loaded configuration from {config_file}")
            except (IOError, UnicodeDecodeError) as e:
                self.logger.error(f"Error reading configuration file {config_file}: {e}")

        if not self.values:
            self.logger.info("No configuration values found. Using default settings.")

        # SMART checks are left to unRAID itself unless explicitly enabled
        check_smart_default = not os.path.exists(self.unraid_marker)

        self.config = Config(
            disk=DiskMonitorConfig.from_values(self.values, self.environ, check_smart_default),
            network=NetworkMonitorConfig.from_values(self.values),
        )
        self.layouts = self.load_layouts(self.config.disk.slot_layout_file)

    def load_layouts(self, layout_file: str) -> List[ModelLayout]:
        """Load model slot layouts from a YAML file

        Layout file structure:
        ```yaml
        models:
          - prefix: "DXP6800"     # Product name prefix from dmidecode
            ata: [ata3, ata4, ata5, ata6, ata1, ata2]
            hctl: ["2:0:0:0", "3:0:0:0", "4:0:0:0", "5:0:0:0", "0:0:0:0", "1:0:0:0"]
        ```

        Args:
            layout_file: Path to the YAML file

        Returns:
            List of layouts, empty if the file is missing or invalid
        """
        layouts = []
        layout_file = os.path.expanduser(layout_file)

        if not os.path.exists(layout_file):
            self.logger.debug(f"Slot layout file {layout_file} not found. Using built-in layouts.")
            return layouts

        try:
            with open(layout_file, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.logger.error(f"Error parsing YAML in slot layout file: {e}")
            return layouts
        except IOError as e:
            self.logger.error(f"Error reading slot layout file: {e}")
            return layouts

        if not isinstance(data, dict) or not data.get("models"):
            self.logger.warning(f"Slot layout file {layout_file} is empty or invalid")
            return layouts

        for entry in data["models"]:
            if not isinstance(entry, dict) or not entry.get("prefix"):
                self.logger.warning("Skipping slot layout without prefix")
                continue

            layout = ModelLayout.from_dict(entry)
            layouts.append(layout)
            self.logger.debug(f"Loaded slot layout for {layout.prefix}: {layout}")

        self.logger.info(f"Found {len(layouts)} slot layouts in {layout_file}")
        return layouts
