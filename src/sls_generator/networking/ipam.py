#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Prefix and address arithmetic used by the network plan

Prefixes are ipaddress interface objects so that a host address with a mask
(10.252.1.0/17) survives a round trip through its string form.
"""

import ipaddress
import logging
from typing import Iterable, List, Optional, Union

from ..errors import AddressFamilyError, MalformedCIDRError, SubnetExhaustedError

logger = logging.getLogger(__name__)

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Prefix = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# usable host count -> prefix length, smallest first
NETMASKS = (
    (2, 30),
    (6, 29),
    (14, 28),
    (30, 27),
    (62, 26),
    (126, 25),
    (254, 24),
    (510, 23),
    (1022, 22),
    (2046, 21),
    (4094, 20),
    (8190, 19),
    (16382, 18),
    (32766, 17),
    (65534, 16),
)


def parse_prefix(value) -> Prefix:
    """ Parse 'a.b.c.d/n' (or an IPv6 equivalent) into a prefix
    """
    if isinstance(value, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return value
    if not isinstance(value, str) or "/" not in value:
        raise MalformedCIDRError(f"{value!r} should be a CIDR in the form 192.168.0.1/24")
    try:
        return ipaddress.ip_interface(value.strip())
    except ValueError as exc:
        raise MalformedCIDRError(f"{value!r} should be a CIDR in the form 192.168.0.1/24") from exc


def parse_address(value) -> Address:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    try:
        return ipaddress.ip_address(str(value).strip())
    except ValueError as exc:
        raise MalformedCIDRError(f"{value!r} should be an ip address") from exc


def network_of(prefix) -> Network:
    """ The masked network for a prefix, interface or network
    """
    if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return prefix
    return parse_prefix(prefix).network


def broadcast(prefix) -> Address:
    return network_of(prefix).broadcast_address


def root_ip(prefix) -> Address:
    return network_of(prefix).network_address


def gateway_ip(prefix) -> Address:
    """ Conventional gateway: first address after the network root
    """
    return root_ip(prefix) + 1


def add(address: Address, offset: int) -> Address:
    """ Offset an address, wrapping within its family
    """
    width = address.max_prefixlen
    value = (int(address) + offset) % (1 << width)
    return ipaddress.ip_address(value) if width == 32 else ipaddress.IPv6Address(value)


def compare(first: Address, second: Address) -> int:
    if first.version != second.version:
        raise AddressFamilyError(f"cannot compare IPv{first.version} {first} with IPv{second.version} {second}")
    if first < second:
        return -1
    if first > second:
        return 1
    return 0


def prefix_length_to_mask(bits: int, width: int = 32) -> Address:
    if not 0 <= bits <= width:
        raise MalformedCIDRError(f"prefix length {bits} is outside [0, {width}]")
    mask = ((1 << width) - 1) ^ ((1 << (width - bits)) - 1)
    return ipaddress.IPv4Address(mask) if width == 32 else ipaddress.IPv6Address(mask)


def usable_host_addresses(prefix) -> int:
    net = network_of(prefix)
    host_bits = net.max_prefixlen - net.prefixlen
    if host_bits == 0:
        return 1
    if host_bits == 1:
        return 2
    return (1 << host_bits) - 2


def subnet_within(host_count: int) -> int:
    """ Prefix length of the smallest subnet with more usable hosts than host_count
    """
    for hosts, prefixlen in NETMASKS:
        if hosts > host_count:
            return prefixlen
    raise SubnetExhaustedError(f"no standard subnet holds {host_count} hosts")


def contains_subnet(outer, inner) -> bool:
    outer_net = network_of(outer)
    inner_net = network_of(inner)
    if outer_net.version != inner_net.version:
        return False
    return inner_net.subnet_of(outer_net)


def coalesce_subnets(subnets: Iterable[Network]) -> List[Network]:
    """
    Collapse allocated subnets into a sorted, non-overlapping list. Subnets
    carved from one another (a supernet'd subnet covering its siblings) are
    merged rather than rejected.
    """
    return list(ipaddress.collapse_addresses(sorted(subnets)))


def find_unallocated_subnets(supernet: Network, allocated_subnets: List[Network]) -> List[Network]:
    """
    Find unallocated blocks between the allocated subnets inside the supernet.
    Think of it as supernet - allocated_subnets.
    Returns
        A list of unallocated subnets from the supernet, ascending
    """
    allocated = [s for s in coalesce_subnets(allocated_subnets) if s.overlaps(supernet)]
    if not allocated:
        return [supernet]

    unallocated = []
    cursor = supernet.network_address
    for subnet in allocated:
        start = max(subnet.network_address, supernet.network_address)
        if start > cursor:
            unallocated.extend(ipaddress.summarize_address_range(cursor, start - 1))
        end = min(subnet.broadcast_address, supernet.broadcast_address)
        if end == supernet.broadcast_address:
            return unallocated
        cursor = end + 1

    unallocated.extend(ipaddress.summarize_address_range(cursor, supernet.broadcast_address))
    return unallocated


def free_subnet(network, prefixlen: int, allocated: Iterable) -> Network:
    """ First aligned block of the requested size that nothing has claimed yet
    """
    supernet = network_of(network)
    if prefixlen < supernet.prefixlen:
        raise SubnetExhaustedError(f"tried to fit: /{prefixlen} into {supernet}")

    allocated_nets = [network_of(a) for a in allocated]
    for gap in find_unallocated_subnets(supernet, allocated_nets):
        if gap.prefixlen <= prefixlen:
            return next(gap.subnets(new_prefix=prefixlen))

    raise SubnetExhaustedError(f"tried to fit: /{prefixlen} into {supernet}")


def first_free_address(
        prefix,
        reserved: Iterable[Address],
        start_offset: int = 2,
        limit: Optional[Address] = None,
        gateway: Optional[Address] = None,
) -> Address:
    """
    Lowest address at or after prefix + start_offset that is not the network
    root, the gateway, the broadcast or already reserved. The search stops
    before limit (or the broadcast when no limit is set).
    """
    iface = parse_prefix(prefix)
    net = iface.network
    bcast = net.broadcast_address
    stop = bcast if limit is None or limit > bcast else limit
    skip = set(reserved)
    skip.add(net.network_address)
    skip.add(bcast)
    if gateway is not None:
        skip.add(gateway)

    candidate = int(iface.ip) + start_offset
    while candidate < int(stop):
        address = ipaddress.ip_address(candidate) if net.version == 4 else ipaddress.IPv6Address(candidate)
        if address not in skip:
            return address
        candidate += 1

    raise SubnetExhaustedError(
        f"{iface} subnet has exhausted its available IPv{net.version} addresses, "
        f"failed to find a free address")
