"""Unit tests for the sysfs LED handle."""

import os
import shutil
import tempfile
import unittest

from ugreen_leds.errors import TransientIOError
from ugreen_leds.led import Led
from ugreen_leds.models import RGB

from tests.fakes import make_leds, read_attr


class TestLed(unittest.TestCase):
    """Test cases for Led."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        make_leds(self.temp_dir, ["disk1"])
        self.led = Led("disk1", self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_exists(self):
        self.assertTrue(self.led.exists())
        self.assertFalse(Led("disk9", self.temp_dir).exists())

    def test_color_round_trip(self):
        """Colors read back exactly as written, without clamping."""
        for color in [RGB(255, 255, 255), RGB(0, 128, 7), RGB(300, 0, 0)]:
            with self.subTest(color=color):
                self.led.set_color(color)
                self.assertEqual(self.led.get_color(), color)
                self.assertEqual(self.led.read("color"), str(color))

    def test_read_strips_whitespace(self):
        with open(os.path.join(self.temp_dir, "disk1", "trigger"), "w") as f:
            f.write("oneshot\n")
        self.assertEqual(self.led.read("trigger"), "oneshot")

    def test_oneshot_attributes(self):
        self.led.set_trigger("oneshot")
        self.led.set_invert(1)
        self.led.set_delay_on(100)
        self.led.set_delay_off(100)
        self.led.set_brightness(64)
        self.led.shot()

        self.assertEqual(read_attr(self.temp_dir, "disk1", "trigger"), "oneshot")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "invert"), "1")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "delay_on"), "100")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "delay_off"), "100")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "brightness"), "64")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "shot"), "1")

    def test_netdev_attributes(self):
        self.led.set_device_name("eth0")
        self.led.set_link(1)
        self.led.set_tx(0)
        self.led.set_rx(1)
        self.led.set_interval(200)

        self.assertEqual(read_attr(self.temp_dir, "disk1", "device_name"), "eth0")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "link"), "1")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "tx"), "0")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "rx"), "1")
        self.assertEqual(read_attr(self.temp_dir, "disk1", "interval"), "200")

    def test_missing_led_raises_transient_error(self):
        led = Led("netdev", self.temp_dir)
        with self.assertRaises(TransientIOError):
            led.set_color(RGB(1, 2, 3))
        with self.assertRaises(TransientIOError):
            led.read("color")


if __name__ == "__main__":
    unittest.main()
