"""Unit tests for the disk slot mapper."""

import shutil
import tempfile
import unittest

from ugreen_leds.config import DiskMonitorConfig
from ugreen_leds.disk_mapper import DiskMapper, LED_NAMES
from ugreen_leds.errors import ConfigurationError
from ugreen_leds.models import DiskTable, ModelLayout

from tests.fakes import FakeSystem, make_leds, read_attr


def ata_link(port, host, device):
    return (f"../devices/pci0000:00/0000:00:17.0/ata{port}/host{host}/target{host}:0:0/"
            f"{host}:0:0:0/block/{device}")


class TestDiskMapper(unittest.TestCase):
    """Test cases for DiskMapper class."""

    def setUp(self):
        self.led_path = tempfile.mkdtemp()
        self.system = FakeSystem()
        self.config = DiskMonitorConfig()
        self.table = DiskTable()

    def tearDown(self):
        shutil.rmtree(self.led_path, ignore_errors=True)

    def _mapper(self, layouts=None):
        return DiskMapper(self.config, self.system, layouts=layouts, led_path=self.led_path)

    def test_ata_enumeration(self):
        self.system.links = {
            "sda": ata_link(1, 0, "sda"),
            "sdb": ata_link(2, 1, "sdb"),
            "nvme0n1": "../devices/pci0000:00/0000:00:1d.0/0000:01:00.0/nvme/nvme0/nvme0n1",
        }

        devices = self._mapper().enumerate_disks()

        self.assertEqual(devices, {"ata1": "sda", "ata2": "sdb"})

    def test_hctl_enumeration_keeps_sata_lines(self):
        self.config.mapping_method = "hctl"
        self.system.lsblk_output = {"hctl": "\n".join([
            "NAME HCTL       TRAN",
            "sda  0:0:0:0    sata",
            "sdb  1:0:0:0    sata",
            "sdc  6:0:0:0    usb",
        ])}

        devices = self._mapper().enumerate_disks()

        self.assertEqual(devices, {"0:0:0:0": "sda", "1:0:0:0": "sdb"})

    def test_serial_enumeration(self):
        self.config.mapping_method = "serial"
        self.system.lsblk_output = {"serial": "sda  WD-AAA  sata\nsdb  WD-BBB  sata\n"}

        self.assertEqual(self._mapper().enumerate_disks(), {"WD-AAA": "sda", "WD-BBB": "sdb"})

    def test_lsblk_failure_finds_no_disks(self):
        self.config.mapping_method = "hctl"
        self.assertEqual(self._mapper().enumerate_disks(), {})

    def test_default_order_for_known_model(self):
        self.system.product = "DXP4800 Plus"
        with self.assertLogs(level="INFO") as logs:
            order = self._mapper().key_order()

        self.assertEqual(order, [f"ata{port}" for port in range(1, 9)])
        self.assertTrue(any("Found UGREEN DXP4800 series" in line for line in logs.output))

    def test_dxp6800_permutation(self):
        self.system.product = "DXP6800 Pro"

        self.assertEqual(self._mapper().key_order(),
                         ["ata3", "ata4", "ata5", "ata6", "ata1", "ata2"])

        self.config.mapping_method = "hctl"
        self.assertEqual(self._mapper().key_order(),
                         ["2:0:0:0", "3:0:0:0", "4:0:0:0", "5:0:0:0", "0:0:0:0", "1:0:0:0"])

    def test_unknown_model_warns_and_uses_default(self):
        self.system.product = "Some Other NAS"
        with self.assertLogs(level="WARNING") as logs:
            order = self._mapper().key_order()

        self.assertEqual(order[0], "ata1")
        self.assertTrue(any("Unknown model Some Other NAS" in line for line in logs.output))

    def test_missing_product_name_warns(self):
        with self.assertLogs(level="WARNING") as logs:
            self._mapper().key_order()
        self.assertTrue(any("dmidecode" in line for line in logs.output))

    def test_custom_layout_overrides_builtin(self):
        self.system.product = "DXP6800 Pro"
        custom = ModelLayout(prefix="DXP6800", ata=["ata6", "ata5"])

        self.assertEqual(self._mapper(layouts=[custom]).key_order(), ["ata6", "ata5"])

    def test_serial_order(self):
        self.config.mapping_method = "serial"
        self.config.disk_serial = ["SER2", "SER1"]
        self.assertEqual(self._mapper().key_order(), ["SER2", "SER1"])

    def test_serial_without_list_fails_before_touching_leds(self):
        make_leds(self.led_path, ["disk1", "disk2"])
        self.config.mapping_method = "serial"

        with self.assertRaises(ConfigurationError):
            self._mapper().initialize_slots(self.table)

        self.assertIsNone(read_attr(self.led_path, "disk1", "trigger"))
        self.assertEqual(len(self.table), 0)

    def test_unsupported_method(self):
        self.config.mapping_method = "wwn"
        with self.assertRaises(ConfigurationError):
            self._mapper().key_order()

    def test_initialize_slots(self):
        make_leds(self.led_path, ["disk1", "disk2", "disk3"])
        self.config.brightness_disk_leds = 128
        self.system.product = "DXP4800"
        self.system.links = {"sda": ata_link(1, 0, "sda"), "sdb": ata_link(3, 2, "sdb")}
        self.system.present = {"sda", "sdb"}

        bindings = self._mapper().initialize_slots(self.table)

        self.assertEqual([b.to_dict() for b in bindings], [
            {"slot": 1, "led": "disk1", "key": "ata1", "device": "sda"},
            {"slot": 2, "led": "disk2", "key": "ata2", "device": ""},
            {"slot": 3, "led": "disk3", "key": "ata3", "device": "sdb"},
        ])
        self.assertEqual(self.table.device_to_led(), {"sda": "disk1", "sdb": "disk3"})

        self.assertEqual(read_attr(self.led_path, "disk1", "trigger"), "oneshot")
        self.assertEqual(read_attr(self.led_path, "disk1", "invert"), "1")
        self.assertEqual(read_attr(self.led_path, "disk1", "delay_on"), "100")
        self.assertEqual(read_attr(self.led_path, "disk1", "color"), "255 255 255")
        self.assertEqual(read_attr(self.led_path, "disk1", "brightness"), "128")

        # Empty slot
        self.assertEqual(read_attr(self.led_path, "disk2", "brightness"), "0")
        self.assertEqual(read_attr(self.led_path, "disk2", "trigger"), "none")

    def test_missing_leds_are_skipped(self):
        make_leds(self.led_path, ["disk2"])
        self.system.product = "DXP4800"
        self.system.links = {"sda": ata_link(1, 0, "sda"), "sdb": ata_link(2, 1, "sdb")}
        self.system.present = {"sda", "sdb"}

        bindings = self._mapper().initialize_slots(self.table)

        self.assertEqual([b.led_name for b in bindings], ["disk2"])
        self.assertEqual(self.table.device_to_led(), {"sdb": "disk2"})

    def test_device_without_node_is_turned_off(self):
        make_leds(self.led_path, ["disk1"])
        self.system.product = "DXP4800"
        self.system.links = {"sda": ata_link(1, 0, "sda")}

        bindings = self._mapper().initialize_slots(self.table)

        self.assertFalse(bindings[0].bound)
        self.assertEqual(len(self.table), 0)
        self.assertEqual(read_attr(self.led_path, "disk1", "brightness"), "0")

    def test_slots_beyond_key_order_stay_dark(self):
        make_leds(self.led_path, LED_NAMES)
        self.system.product = "DXP6800 Pro"
        self.system.links = {"sda": ata_link(3, 2, "sda")}
        self.system.present = {"sda"}

        bindings = self._mapper().initialize_slots(self.table)

        self.assertEqual(len(bindings), 8)
        self.assertEqual(bindings[0].device, "sda")
        self.assertEqual(bindings[7].key, "")
        self.assertEqual(read_attr(self.led_path, "disk8", "trigger"), "none")


if __name__ == "__main__":
    unittest.main()
