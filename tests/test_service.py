"""Unit tests for the LED service."""

import logging
import os
import shutil
import tempfile
import threading
import unittest
from unittest.mock import MagicMock, patch

from ugreen_leds.config import Config, NetworkMonitorConfig, DiskMonitorConfig
from ugreen_leds.errors import ConfigurationError
from ugreen_leds.service import LedService

from tests.fakes import FakeSystem


class TestLedService(unittest.TestCase):
    """Test cases for LedService class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.system = FakeSystem()
        self.service = LedService(system=self.system, led_path=self.temp_dir)

    def tearDown(self):
        self.service.stop_event.set()
        self.service.wait()
        logging.getLogger("ugreen-leds").setLevel(logging.INFO)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_parse_arguments(self):
        self.service.parse_arguments(["--config", "/tmp/leds.conf", "-v"])

        self.assertEqual(self.service.config_file, "/tmp/leds.conf")
        self.assertTrue(self.service.verbose)
        self.assertEqual(self.service.logger.level, logging.DEBUG)

    def test_parse_arguments_quiet(self):
        self.service.parse_arguments(["-q"])

        self.assertEqual(self.service.config_file, "/etc/ugreen-leds.conf")
        self.assertEqual(self.service.logger.level, logging.WARNING)

    def test_check_kernel_modules(self):
        self.system.modules = {"ledtrig_oneshot", "led_ugreen"}

        with self.assertLogs("ugreen-leds", level="WARNING") as logs:
            self.service.check_kernel_modules()

        self.assertEqual(len(logs.output), 1)
        self.assertIn("ledtrig_netdev", logs.output[0])

    @patch("ugreen_leds.service.NetworkMonitor")
    def test_only_first_interface_gets_default_led(self, mock_network_monitor):
        config = Config(
            disk=DiskMonitorConfig(enable=False),
            network=NetworkMonitorConfig(enable=True, interfaces=["eth0", "eth1"]),
        )

        with self.assertLogs("ugreen-leds", level="WARNING") as logs:
            self.service.start_monitors(config)
        self.service.wait()

        self.assertEqual(mock_network_monitor.call_count, 1)
        args, kwargs = mock_network_monitor.call_args
        self.assertEqual(args[1], "eth0")
        self.assertEqual(kwargs["led_name"], "netdev")
        self.assertTrue(any("eth1" in line for line in logs.output))
        mock_network_monitor.return_value.run.assert_called_once_with(self.service.stop_event)

    @patch("ugreen_leds.service.NetworkMonitor")
    def test_explicit_led_names(self, mock_network_monitor):
        config = Config(
            disk=DiskMonitorConfig(enable=False),
            network=NetworkMonitorConfig(enable=True, interfaces=["eth0", "eth1"],
                                         led_names=["netdev", "power"]),
        )

        self.service.start_monitors(config)
        self.service.wait()

        led_names = [call.kwargs["led_name"] for call in mock_network_monitor.call_args_list]
        self.assertEqual(sorted(led_names), ["netdev", "power"])

    def test_monitor_error_is_logged(self):
        monitor = MagicMock()
        monitor.run.side_effect = ConfigurationError("Serial mapping method requires DISK_SERIAL to be set")

        with self.assertLogs("ugreen-leds", level="ERROR") as logs:
            self.service._run_monitor("Disk monitor", monitor)

        self.assertIn("DISK_SERIAL", logs.output[0])

    @patch.object(LedService, "install_signal_handlers")
    def test_run_without_leds_finishes(self, _mock_signals):
        config_file = os.path.join(self.temp_dir, "ugreen-leds.conf")
        with open(config_file, "w") as f:
            f.write(f"SLOT_LAYOUT_FILE={os.path.join(self.temp_dir, 'layouts.yaml')}\n")
        self.system.modules = {"ledtrig_oneshot", "ledtrig_netdev"}

        self.service.run(["--config", config_file])

        self.assertIsNotNone(self.service.config_manager)
        self.assertTrue(self.service.config_manager.config.disk.enable)
        self.assertFalse(self.service.config_manager.config.network.enable)
        self.assertTrue(all(not thread.is_alive() for thread in self.service.threads))


if __name__ == "__main__":
    unittest.main()
