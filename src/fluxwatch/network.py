"""
Network interface helpers - local addresses, MAC and device identity
"""
import socket
import logging
import ipaddress

import psutil

from fluxwatch.models import DeviceIdentity

logger = logging.getLogger(__name__)

VIRTUAL_PREFIXES = ('docker', 'br-', 'veth')
NO_MAC = '000000000000'
FALLBACK_IP = '127.0.0.1'


def _is_loopback(name, addrs):
    if name == 'lo':
        return True
    for addr in addrs:
        if addr.family == socket.AF_INET and ipaddress.ip_address(addr.address).is_loopback:
            return True
    return False


def _up_interfaces():
    """Yield (name, addrs) for every interface that is up and not loopback"""
    addrs_by_name = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    for name, addrs in addrs_by_name.items():
        st = stats.get(name)
        if st is None or not st.isup:
            continue
        if _is_loopback(name, addrs):
            continue
        yield name, addrs


def eligible_interfaces():
    """Up, non-loopback interfaces that are not docker/bridge/veth devices"""
    for name, addrs in _up_interfaces():
        if name.startswith(VIRTUAL_PREFIXES):
            continue
        yield name, addrs


def _format_mac(address):
    return address.replace(':', '').replace('-', '').upper()


def primary_mac_address():
    """MAC of the first eligible interface, or None"""
    try:
        for name, addrs in eligible_interfaces():
            for addr in addrs:
                if addr.family == psutil.AF_LINK and addr.address:
                    return _format_mac(addr.address)
    except OSError as e:
        logger.error(f"Error getting MAC address: {e}")
    return None


def local_ipv4():
    """
    Preferred local IPv4 address

    First unicast IPv4 of an eligible interface, then whatever the hostname
    resolves to. Returns None when neither yields an address.
    """
    try:
        for name, addrs in eligible_interfaces():
            for addr in addrs:
                if addr.family == socket.AF_INET and not ipaddress.ip_address(addr.address).is_loopback:
                    return addr.address
    except (OSError, ValueError) as e:
        logger.debug(f"Interface scan failed: {e}")

    try:
        _, _, host_ips = socket.gethostbyname_ex(socket.gethostname())
        if host_ips:
            return host_ips[0]
    except OSError as e:
        logger.debug(f"Hostname resolution failed: {e}")

    return None


def all_ipv4():
    """Every IPv4 address bound to an up, non-loopback interface"""
    try:
        return tuple(
            addr.address
            for _, addrs in _up_interfaces()
            for addr in addrs
            if addr.family == socket.AF_INET
        )
    except OSError as e:
        logger.debug(f"Interface scan failed: {e}")
        return None


def resolve_identity():
    """Compute the device identity: hostname plus primary MAC"""
    hostname = socket.gethostname()
    mac = primary_mac_address() or NO_MAC
    return DeviceIdentity(device_id=f"{hostname}_{mac}", hostname=hostname)
