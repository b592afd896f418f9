"""
호스트 네트워크 주소 조회.

원격 접속 링크(http://<ip>:<port>/)에 쓸 IPv4 주소를 찾는다.
"""

import ipaddress
import logging
import socket

import psutil

logger = logging.getLogger(__name__)


def primary_ipv4() -> str | None:
    """
    첫 번째 non-loopback IPv4 주소.

    Returns:
        주소 문자열, 없으면 None (호출자는 원격 링크를 생략해야 함)
    """
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, RuntimeError) as e:
        logger.warning(f"Failed to enumerate network interfaces: {e}")
        return None

    for name, addrs in interfaces.items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            try:
                if ipaddress.IPv4Address(addr.address).is_loopback:
                    continue
            except ValueError:
                continue
            logger.debug(f"Primary IPv4 from {name}: {addr.address}")
            return str(addr.address)

    return None
