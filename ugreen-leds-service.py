#!/usr/bin/env python3
"""
UGREEN LED Service

Keeps the disk slot and network LEDs of a UGREEN NAS in sync with disk
health (SMART, ZFS pool state, presence, I/O activity) and network state
(link speed, gateway reachability).
"""

from ugreen_leds.service import main

if __name__ == "__main__":
    main()
