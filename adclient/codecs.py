"""
Converters for attribute values that Active Directory stores in its own
formats.
"""

import ipaddress
import struct
from datetime import datetime, timedelta

import pytz

#: Start of the Windows FILETIME epoch.
AD_EPOCH = datetime(1601, 1, 1, tzinfo=pytz.UTC)
#: ``accountExpires`` and friends use these to mean "never".
FILETIME_NEVER = (0, 0x7FFFFFFFFFFFFFFF)


def ip_to_int(ip: str) -> int:
    """
    Convert a dotted-quad IPv4 address to the signed 32-bit integer AD uses
    for attributes such as ``msRADIUSFramedIPAddress``.

    Raises:
        ValueError: ``ip`` is not an IPv4 address

    """
    value = int(ipaddress.IPv4Address(ip))
    if value >= 2**31:
        value -= 2**32
    return value


def int_to_ip(value: int) -> str:
    """
    The inverse of :py:func:`ip_to_int`.  Unsigned values are accepted too.

    Raises:
        ValueError: ``value`` does not fit in 32 bits

    """
    value = int(value)
    if not -(2**31) <= value < 2**32:
        msg = f"{value} does not fit in 32 bits"
        raise ValueError(msg)
    return str(ipaddress.IPv4Address(value & 0xFFFFFFFF))


def decode_sid(raw: bytes) -> str:
    """
    Convert a binary ``objectSid`` to its ``S-1-5-21-...`` string form.

    Raises:
        ValueError: ``raw`` is truncated

    """
    if len(raw) < 8:
        msg = f"SID too short: {len(raw)} bytes"
        raise ValueError(msg)
    revision = raw[0]
    count = raw[1]
    if len(raw) < 8 + 4 * count:
        msg = f"SID too short for {count} sub-authorities: {len(raw)} bytes"
        raise ValueError(msg)
    authority = int.from_bytes(raw[2:8], "big")
    subauthorities = struct.unpack_from(f"<{count}I", raw, 8)
    return "-".join(["S", str(revision), str(authority), *map(str, subauthorities)])


def filetime_to_datetime(value: int | str | bytes) -> datetime | None:
    """
    Convert a FILETIME (100 nanosecond intervals since 1601-01-01 UTC), such
    as ``lastLogonTimestamp`` or ``accountExpires``, to an aware UTC
    datetime.

    Returns:
        The datetime, or ``None`` if ``value`` means "never".

    """
    if isinstance(value, bytes):
        value = value.decode("ascii")
    value = int(value)
    if value in FILETIME_NEVER:
        return None
    if value < 0:
        msg = f"Negative FILETIME: {value}"
        raise ValueError(msg)
    return AD_EPOCH + timedelta(microseconds=value // 10)
