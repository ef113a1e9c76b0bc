"""LED service entry point"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from .config import ConfigManager, Config, DEFAULT_CONFIG_FILES
from .disk_monitor import DiskMonitor
from .errors import LedError
from .led import SYSFS_LED_PATH
from .network_monitor import NetworkMonitor
from .system import BaseSystem, LinuxSystem

REQUIRED_KERNEL_MODULES = ["ledtrig_oneshot", "ledtrig_netdev"]


class LedService:
    """Main class of the LED service

    Loads the configuration and runs the disk monitor and one network
    monitor per interface, each in its own thread, until SIGINT/SIGTERM.
    """

    def __init__(self, system: Optional[BaseSystem] = None, led_path: str = SYSFS_LED_PATH):
        """Initialize the LedService instance"""
        # Options
        self.config_file = DEFAULT_CONFIG_FILES[-1]
        self.verbose = False
        self.quiet = False

        self.logger = self._setup_logger()
        self.system = system
        self.led_path = led_path
        self.config_manager: Optional[ConfigManager] = None
        self.stop_event = threading.Event()
        self.threads: List[threading.Thread] = []

    def _setup_logger(self) -> logging.Logger:
        """Set up the logger for the application"""
        logger = logging.getLogger("ugreen-leds")
        logger.setLevel(logging.INFO)

        if not logger.handlers:
            ch = logging.StreamHandler()
            ch.setLevel(logging.DEBUG)

            formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s',
                                          datefmt='%Y-%m-%d %H:%M:%S')
            ch.setFormatter(formatter)

            logger.addHandler(ch)

        return logger

    def parse_arguments(self, argv: Optional[List[str]] = None) -> None:
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(
            description="Keeps the UGREEN NAS disk and network LEDs in sync with device health."
        )

        parser.add_argument("-c", "--config", default=self.config_file, metavar="PATH",
                            help="Path to configuration file")
        parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
        parser.add_argument("-q", "--quiet", action="store_true", help="Suppress INFO messages")

        args = parser.parse_args(argv)

        self.config_file = args.config
        self.verbose = args.verbose
        self.quiet = args.quiet

        if self.verbose:
            self.logger.setLevel(logging.DEBUG)
        elif self.quiet:
            self.logger.setLevel(logging.WARNING)

    def load_config(self) -> Config:
        """Load the unRAID settings and then the main config file"""
        config_files = DEFAULT_CONFIG_FILES[:-1] + [self.config_file]
        self.config_manager = ConfigManager(config_files, logger=self.logger)
        return self.config_manager.config

    def check_kernel_modules(self) -> None:
        """Warn about LED trigger modules that are not loaded"""
        loaded = self.system.loaded_kernel_modules()
        for module in REQUIRED_KERNEL_MODULES:
            if module not in loaded:
                self.logger.warning(f"Module {module} not loaded. "
                                    f"Ensure it's loaded via systemd-modules-load.service")

    def install_signal_handlers(self) -> None:
        def handle_signal(signum, frame):
            self.logger.info("Received shutdown signal, cleaning up...")
            self.stop_event.set()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def _run_monitor(self, name: str, monitor) -> None:
        try:
            monitor.run(self.stop_event)
        except LedError as e:
            self.logger.error(f"{name} error: {e}")

    def start_monitors(self, config: Config) -> None:
        """Start the disk monitor and the network monitors in threads"""
        monitors = []
        layouts = self.config_manager.layouts if self.config_manager else None

        if config.disk.enable:
            disk_monitor = DiskMonitor(config.disk, self.system, layouts=layouts,
                                       led_path=self.led_path, logger=self.logger)
            monitors.append(("Disk monitor", disk_monitor))

        if config.network.enable:
            for index, interface in enumerate(config.network.interfaces):
                led_name = config.network.led_for_interface(index)
                if led_name is None:
                    self.logger.warning(f"No LED configured for {interface} (see NETDEV_LED_NAMES), "
                                        f"not monitoring it")
                    continue

                network_monitor = NetworkMonitor(config.network, interface, self.system,
                                                 led_name=led_name, led_path=self.led_path,
                                                 logger=self.logger)
                monitors.append((f"Network monitor for {interface}", network_monitor))

        for name, monitor in monitors:
            thread = threading.Thread(target=self._run_monitor, args=(name, monitor), name=name, daemon=True)
            thread.start()
            self.threads.append(thread)

    def wait(self) -> None:
        """Wait for all monitors, waking up regularly so signals are handled"""
        for thread in self.threads:
            while thread.is_alive():
                thread.join(timeout=0.5)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Main entry point for the application"""
        self.parse_arguments(argv)

        if self.system is None:
            self.system = LinuxSystem(logger=self.logger)

        config = self.load_config()
        self.check_kernel_modules()
        self.install_signal_handlers()

        self.start_monitors(config)
        self.wait()
        self.logger.info("Service stopped")


def main(argv: Optional[List[str]] = None) -> None:
    try:
        app = LedService()
        app.run(argv)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
