# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/utils/netinfo.py

import socket
from typing import List

import psutil


def local_addresses() -> List[str]:
    """Non-loopback IPv4 and IPv6 addresses of this host."""
    addrs = []
    for name, entries in psutil.net_if_addrs().items():
        for entry in entries:
            if entry.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ip = entry.address.split("%")[0]
            if ip.startswith("127.") or ip == "::1":
                continue
            addrs.append(ip)
    return sorted(set(addrs))
