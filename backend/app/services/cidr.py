"""CIDR utilities for IPAM: parsing, validation, overlap and address generation.

Everything here is pure and synchronous. Malformed input never raises:
parsers return None, predicates return False, generators return [] and
validate_cidr reports problems in its result.
"""
import re
from decimal import Decimal, ROUND_HALF_UP
from ipaddress import IPv4Address, IPv6Address, IPv6Network
from typing import Optional, List, Tuple

from app.logger import get_logger
from app.models.cidr import (
    CIDRInfo,
    IPAddressRecord,
    IPStatus,
    IPType,
    IPValidation,
    IPVersion,
    ValidationResult,
)

logger = get_logger("services.cidr")

# Above this, address lists are not built synchronously at all
MAX_GENERATED_ADDRESSES = 65536
# Above this, only network/gateway/broadcast records are generated
MAX_ENUMERATED_RECORDS = 4096

# Reported as total_addresses for IPv6 blocks shorter than /64
IPV6_ADDRESS_CEILING = 2 ** 53 - 1

IPV4_REGEX = re.compile(r"([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})")
IPV4_CIDR_REGEX = re.compile(r"([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})/([0-9]{1,2})")

# Simplified colon-hex grammar, strict parsing is left to ipaddress
IPV6_REGEX = re.compile(r"([0-9a-fA-F]{0,4}:){2,7}[0-9a-fA-F]{0,4}")
IPV6_CIDR_REGEX = re.compile(r"([0-9a-fA-F:]+)/([0-9]{1,3})")

COUNT_SUFFIXES = [
    (10 ** 12, "T"),
    (10 ** 9, "B"),
    (10 ** 6, "M"),
    (10 ** 3, "K"),
]


def is_ipv4(ip: str) -> bool:
    """Check for a dotted-quad IPv4 address with octets 0-255."""
    match = IPV4_REGEX.fullmatch(ip)
    if not match:
        return False
    return all(int(octet) <= 255 for octet in match.groups())


def is_ipv6(ip: str) -> bool:
    """Check for an IPv6 address. A trailing /prefix is ignored."""
    ip_part = ip.split("/")[0]
    if not (IPV6_REGEX.fullmatch(ip_part) or "::" in ip_part):
        return False
    try:
        IPv6Address(ip_part)
    except ValueError:
        return False
    return True


def ipv4_to_int(ip: str) -> int:
    a, b, c, d = (int(part) for part in ip.split("."))
    return (a << 24) | (b << 16) | (c << 8) | d


def int_to_ipv4(num: int) -> str:
    return str(IPv4Address(num))


def address_to_int(ip: str) -> int:
    """Numeric value of an IPv4 or IPv6 address, used for ordering and ranges."""
    if is_ipv4(ip):
        return ipv4_to_int(ip)
    return int(IPv6Address(ip))


def cidr_range(info: CIDRInfo) -> Tuple[int, int]:
    """Inclusive integer range [first, last] covered by a parsed CIDR."""
    bits = 32 if info.version == IPVersion.IPV4 else 128
    start = address_to_int(info.network_address)
    return start, start + (1 << (bits - info.prefix_length)) - 1


def _parse_ipv4(octets: List[int], prefix: int) -> Optional[CIDRInfo]:
    if prefix > 32 or any(octet > 255 for octet in octets):
        return None

    ip_num = (octets[0] << 24) | (octets[1] << 16) | (octets[2] << 8) | octets[3]
    mask = 0 if prefix == 0 else (~0 << (32 - prefix)) & 0xFFFFFFFF
    network_num = ip_num & mask
    broadcast_num = network_num | (~mask & 0xFFFFFFFF)

    total = 2 ** (32 - prefix)
    usable = total if prefix >= 31 else max(0, total - 2)

    network_address = int_to_ipv4(network_num)

    return CIDRInfo(
        version=IPVersion.IPV4,
        cidr=f"{network_address}/{prefix}",
        network_address=network_address,
        prefix_length=prefix,
        broadcast_address=int_to_ipv4(broadcast_num) if prefix < 31 else None,
        gateway_address=int_to_ipv4(network_num + 1) if prefix < 31 else None,
        total_addresses=total,
        usable_addresses=usable,
    )


def _parse_ipv6(ip: str, prefix: int) -> Optional[CIDRInfo]:
    if prefix > 128 or not is_ipv6(ip):
        return None

    try:
        network = IPv6Network(f"{ip}/{prefix}", strict=False)
    except ValueError:
        return None

    # No enumeration for IPv6, short prefixes only get the sentinel
    total = 2 ** (128 - prefix) if prefix >= 64 else IPV6_ADDRESS_CEILING
    network_address = str(network.network_address)

    return CIDRInfo(
        version=IPVersion.IPV6,
        cidr=f"{network_address}/{prefix}",
        network_address=network_address,
        prefix_length=prefix,
        broadcast_address=None,
        gateway_address=None,
        total_addresses=total,
        usable_addresses=total,
    )


def parse_cidr(cidr: str) -> Optional[CIDRInfo]:
    """Parse CIDR notation and derive network information.

    Args:
        cidr: CIDR string, e.g. "192.168.1.5/24" or "2001:db8::/48"

    Returns:
        CIDRInfo with the canonical (network-aligned) CIDR, or None if the
        input is malformed or out of range
    """
    trimmed = cidr.strip()

    match = IPV4_CIDR_REGEX.fullmatch(trimmed)
    if match:
        groups = match.groups()
        return _parse_ipv4([int(g) for g in groups[:4]], int(groups[4]))

    match = IPV6_CIDR_REGEX.fullmatch(trimmed)
    if match:
        return _parse_ipv6(match.group(1), int(match.group(2)))

    return None


def validate_cidr(cidr: str) -> ValidationResult:
    """Validate CIDR notation and collect warnings about corrections and scale."""
    errors: List[str] = []
    warnings: List[str] = []

    trimmed = cidr.strip()

    if not trimmed:
        errors.append("CIDR cannot be empty")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    if "/" not in trimmed:
        errors.append("CIDR must include a prefix (e.g. /24)")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    parsed = parse_cidr(trimmed)
    if not parsed:
        errors.append("Invalid CIDR format")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    input_ip = trimmed.split("/")[0]
    if parsed.version == IPVersion.IPV4:
        corrected = input_ip != parsed.network_address
    else:
        corrected = int(IPv6Address(input_ip)) != int(IPv6Address(parsed.network_address))
    if corrected:
        warnings.append(f"Network address corrected to {parsed.network_address}")

    if parsed.version == IPVersion.IPV4:
        total = parsed.total_addresses
        if total > MAX_GENERATED_ADDRESSES:
            warnings.append(
                f"Very large network ({total:,} IPs). Automatic generation will be asynchronous."
            )
        elif total > MAX_ENUMERATED_RECORDS:
            warnings.append(
                f"Large network ({total:,} IPs). Generation may take a few seconds."
            )
    else:
        warnings.append("Automatic IP generation is not supported for IPv6 due to scale.")

    return ValidationResult(valid=True, errors=errors, warnings=warnings)


def check_overlap(cidr1: str, cidr2: str) -> bool:
    """Check whether two CIDR blocks share at least one address.

    Blocks of different address families never overlap. IPv6 blocks are
    compared as full 128-bit ranges.
    """
    first = parse_cidr(cidr1)
    second = parse_cidr(cidr2)

    if not first or not second:
        return False
    if first.version != second.version:
        return False

    start1, end1 = cidr_range(first)
    start2, end2 = cidr_range(second)

    return not (end1 < start2 or end2 < start1)


def generate_ipv4_addresses(cidr: str) -> List[str]:
    """Generate every IPv4 address of a CIDR block in ascending order.

    Returns an empty list for IPv6, invalid input, or blocks larger than
    MAX_GENERATED_ADDRESSES.
    """
    parsed = parse_cidr(cidr)
    if not parsed or parsed.version != IPVersion.IPV4:
        return []

    if parsed.total_addresses > MAX_GENERATED_ADDRESSES:
        logger.warning(
            f"Network {parsed.cidr} too large for synchronous generation "
            f"({parsed.total_addresses} addresses)"
        )
        return []

    start, end = cidr_range(parsed)
    return [int_to_ipv4(num) for num in range(start, end + 1)]


def _structural_records(
    parsed: CIDRInfo, reserve_gateway: bool, gateway_name: str
) -> List[IPAddressRecord]:
    records = [
        IPAddressRecord(
            ip_address=parsed.network_address,
            ip_type=IPType.NETWORK,
            status=IPStatus.RESERVED,
            name="Network",
        )
    ]

    if parsed.gateway_address:
        records.append(IPAddressRecord(
            ip_address=parsed.gateway_address,
            ip_type=IPType.GATEWAY,
            status=IPStatus.RESERVED if reserve_gateway else IPStatus.AVAILABLE,
            name=gateway_name,
        ))

    if parsed.broadcast_address:
        records.append(IPAddressRecord(
            ip_address=parsed.broadcast_address,
            ip_type=IPType.BROADCAST,
            status=IPStatus.RESERVED,
            name="Broadcast",
        ))

    return records


def generate_ip_records(
    cidr: str,
    reserve_gateway: bool = False,
    gateway_name: Optional[str] = None,
) -> List[IPAddressRecord]:
    """Generate typed address records for a subnet.

    Blocks up to MAX_ENUMERATED_RECORDS addresses are fully enumerated;
    larger blocks only get their network, gateway and broadcast records.
    Each address is classified by comparing its value with the network,
    gateway and broadcast derived by parse_cidr.

    Args:
        cidr: IPv4 CIDR string
        reserve_gateway: Mark the gateway address as reserved
        gateway_name: Label for the gateway record (default "Gateway")

    Returns:
        Records in ascending address order, empty for IPv6 or invalid input
    """
    parsed = parse_cidr(cidr)
    if not parsed or parsed.version != IPVersion.IPV4:
        return []

    gateway_label = gateway_name or "Gateway"

    if parsed.total_addresses > MAX_ENUMERATED_RECORDS:
        logger.info(
            f"Network {parsed.cidr} too large for full generation, "
            f"returning only special addresses"
        )
        return _structural_records(parsed, reserve_gateway, gateway_label)

    network = ipv4_to_int(parsed.network_address)
    broadcast = ipv4_to_int(parsed.broadcast_address) if parsed.broadcast_address else None
    gateway = ipv4_to_int(parsed.gateway_address) if parsed.gateway_address else None

    records = []
    for ip in generate_ipv4_addresses(parsed.cidr):
        value = ipv4_to_int(ip)

        if value == network:
            record = IPAddressRecord(
                ip_address=ip, ip_type=IPType.NETWORK, status=IPStatus.RESERVED, name="Network"
            )
        elif value == broadcast:
            record = IPAddressRecord(
                ip_address=ip, ip_type=IPType.BROADCAST, status=IPStatus.RESERVED, name="Broadcast"
            )
        elif value == gateway and reserve_gateway:
            record = IPAddressRecord(
                ip_address=ip, ip_type=IPType.GATEWAY, status=IPStatus.RESERVED, name=gateway_label
            )
        else:
            record = IPAddressRecord(ip_address=ip, ip_type=IPType.HOST, status=IPStatus.AVAILABLE)

        records.append(record)

    return records


def is_ip_in_cidr(ip: str, cidr: str) -> bool:
    """Check whether an address lies inside a CIDR block of the same family."""
    parsed = parse_cidr(cidr)
    if not parsed:
        return False

    ip = ip.strip()
    if parsed.version == IPVersion.IPV4 and is_ipv4(ip):
        value = ipv4_to_int(ip)
    elif parsed.version == IPVersion.IPV6 and is_ipv6(ip):
        value = int(IPv6Address(ip))
    else:
        return False

    start, end = cidr_range(parsed)
    return start <= value <= end


def normalize_ip(ip: str) -> Optional[str]:
    """Canonical text form of an address ("010.0.0.1" -> "10.0.0.1"), None if invalid."""
    ip = ip.strip()
    if is_ipv4(ip):
        return int_to_ipv4(ipv4_to_int(ip))
    if is_ipv6(ip):
        return str(IPv6Address(ip))
    return None


def validate_ip_address(ip: str) -> IPValidation:
    """Validate a single address and detect its version."""
    trimmed = ip.strip()

    if not trimmed:
        return IPValidation(valid=False, error="IP cannot be empty")
    if is_ipv4(trimmed):
        return IPValidation(valid=True, version=IPVersion.IPV4)
    if is_ipv6(trimmed):
        return IPValidation(valid=True, version=IPVersion.IPV6)

    return IPValidation(valid=False, error="Invalid IP format")


def format_ip_count(count: int) -> str:
    """Format an address count for display: 1500 -> "1.5K", 2**32 -> "4.3B"."""
    if count >= 10 ** 15:
        return "> 10^15"

    for threshold, suffix in COUNT_SUFFIXES:
        if count >= threshold:
            scaled = (Decimal(count) / Decimal(threshold)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            return f"{scaled}{suffix}"

    return str(count)
