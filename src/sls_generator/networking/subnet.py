#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Subnets and their IP reservation ledgers
"""

import dataclasses
import ipaddress
import logging
from typing import Dict, Iterable, List, Optional

from . import ipam
from ..errors import DuplicateReservationError, ReservationNotFoundError, SubnetExhaustedError, TopologyError

logger = logging.getLogger(__name__)

UAI_SUBNET_NAME = "uai_macvlan"

# untagged provisioning network
MTL_VLAN = 1

MAX_INTERFACE_NAME_LENGTH = 15


@dataclasses.dataclass
class IPReservation:
    name: str
    ip_address: ipaddress.IPv4Address
    comment: str = ""
    aliases: List[str] = dataclasses.field(default_factory=list)
    ip_address6: Optional[ipaddress.IPv6Address] = None

    def add_alias(self, alias: str):
        if alias not in self.aliases:
            self.aliases.append(alias)

    def todict(self) -> dict:
        rv = {
            "Name": self.name,
            "IPAddress": str(self.ip_address),
        }
        if self.ip_address6 is not None:
            rv["IPAddress6"] = str(self.ip_address6)
        if self.aliases:
            rv["Aliases"] = list(self.aliases)
        if self.comment:
            rv["Comment"] = self.comment
        return rv


@dataclasses.dataclass
class IPSubnet:
    """
    A subnet of a network. The cidr keeps the host part it was created with,
    so a bootstrap subnet can be 10.252.1.0/17 once it shares the supernet
    mask. Reservations are kept in creation order.
    """
    name: str
    cidr: ipaddress.IPv4Interface
    vlan_id: int = 0
    full_name: str = ""
    gateway: Optional[ipaddress.IPv4Address] = None
    dhcp_start: Optional[ipaddress.IPv4Address] = None
    dhcp_end: Optional[ipaddress.IPv4Address] = None
    reservation_start: Optional[ipaddress.IPv4Address] = None
    reservation_end: Optional[ipaddress.IPv4Address] = None
    reservations: List[IPReservation] = dataclasses.field(default_factory=list)
    metallb_pool_name: str = ""
    comment: str = ""
    cidr6: Optional[ipaddress.IPv6Interface] = None
    gateway6: Optional[ipaddress.IPv6Address] = None
    # not part of the SLS document
    net_name: str = ""
    parent_device: str = ""
    interface_name: str = ""

    @property
    def network(self) -> ipaddress.IPv4Network:
        return self.cidr.network

    def reserved_ips(self) -> List[ipaddress.IPv4Address]:
        return [r.ip_address for r in self.reservations]

    def reservations_by_name(self) -> Dict[str, IPReservation]:
        return {r.name: r for r in self.reservations}

    def find_reservation(self, name: str) -> Optional[IPReservation]:
        for reservation in self.reservations:
            if reservation.name == name:
                return reservation
        return None

    def lookup_reservation(self, name: str) -> IPReservation:
        reservation = self.find_reservation(name)
        if reservation is None:
            raise ReservationNotFoundError(f"reservation {name} not found in subnet {self.name}")
        return reservation

    def _check_new(self, name: str, address=None):
        if self.find_reservation(name) is not None:
            raise DuplicateReservationError(f"reservation {name} already exists in subnet {self.name}")
        if address is not None and address in self.reserved_ips():
            owner = [r.name for r in self.reservations if r.ip_address == address][0]
            raise DuplicateReservationError(
                f"cannot reserve {address} for {name} in subnet {self.name}, already held by {owner}")

    def _next_ip6(self) -> Optional[ipaddress.IPv6Address]:
        if self.cidr6 is None:
            return None
        reserved = [r.ip_address6 for r in self.reservations if r.ip_address6 is not None]
        return ipam.first_free_address(self.cidr6, reserved, gateway=self.gateway6)

    def add_reservation(self, name: str, comment: str = "") -> IPReservation:
        """
        Reserve the lowest free address from the subnet address + 2, skipping
        the gateway and every address already held. Fails once the search
        reaches the DHCP range or the broadcast.
        """
        self._check_new(name)
        try:
            address = ipam.first_free_address(
                self.cidr, self.reserved_ips(), limit=self.dhcp_start, gateway=self.gateway)
        except SubnetExhaustedError as exc:
            raise SubnetExhaustedError(
                f"{self.net_name} {self.name} subnet has exhausted its available IPv4 addresses, "
                f"failed to reserve {name}") from exc

        reservation = IPReservation(name=name, ip_address=address, comment=comment,
                                    ip_address6=self._next_ip6())
        self.reservations.append(reservation)
        return reservation

    def add_reservation_with_ip(self, name: str, address, comment: str = "") -> IPReservation:
        address = ipam.parse_address(address)
        if address not in self.network:
            raise TopologyError(
                f'Cannot add "{name}" to {self.name} subnet as {address}. {address} is not part of {self.cidr}.')
        self._check_new(name, address)

        reservation = IPReservation(name=name, ip_address=address, comment=comment)
        self.reservations.append(reservation)
        return reservation

    def add_reservation_with_pin(self, name: str, comment: str, pin: int) -> IPReservation:
        """ Reserve the subnet's first three octets plus pin as the last one

        A non-empty comment is also split on "," into the aliases.
        """
        octets = str(self.network.network_address).split(".")[:3]
        reservation = self.add_reservation_with_ip(name, ".".join(octets + [str(pin)]), comment)
        if comment:
            for alias in comment.split(","):
                reservation.add_alias(alias)
        return reservation

    def reserve_net_mgmt_ips(self, spines: Iterable[str], leafs: Iterable[str],
                             leaf_bmcs: Iterable[str], cdus: Iterable[str], additional: int = 0):
        """
        Reserve switch addresses named by switch type, commented with the
        switch xname, then `additional` net-mgmt-N addresses held for
        equipment not known yet.
        """
        for prefix, xnames in (("sw-spine", spines), ("sw-leaf", leafs),
                               ("sw-leaf-bmc", leaf_bmcs), ("sw-cdu", cdus)):
            for idx, xname in enumerate(xnames, start=1):
                self.add_reservation(f"{prefix}-{idx:03d}", xname)
        for idx in range(1, additional + 1):
            self.add_reservation(f"net-mgmt-{idx}")

    def reserve_edge_switch_ips(self, edges: Iterable[str]):
        for idx, xname in enumerate(edges, start=1):
            self.add_reservation(f"chn-switch-{idx}", xname)

    def usable_host_addresses(self) -> int:
        return ipam.usable_host_addresses(self.cidr)

    def update_dhcp_range(self, apply_supernet: bool, pool_start: Optional[ipaddress.IPv4Address] = None):
        """
        Recompute the dynamic range that follows the static reservations.

        With apply_supernet the range is 200 addresses long since the shared
        mask makes the broadcast meaningless. With pool_start (customer
        networks) the range stops before the first load balancer pool, one
        address earlier when the gateway sits just below that pool.
        Otherwise the range runs to the address before the broadcast.
        The uai_macvlan subnet records the bounds as its reservation range.
        """
        if len(self.reservations) > self.usable_host_addresses():
            raise SubnetExhaustedError(
                f"Could not create {self.full_name} subnet in {self.net_name}. "
                f"There are {len(self.reservations)} reservations and only "
                f"{self.usable_host_addresses()} usable ip addresses in the subnet {self.cidr}.")

        base = self.cidr.ip
        start = max(ipam.add(base, 10), ipam.add(base, len(self.reservations) + 2))
        if self.reservations:
            start = max(start, ipam.add(max(self.reserved_ips()), 1))

        if pool_start is not None:
            if self.gateway is not None and self.gateway == ipam.add(pool_start, -1):
                end = ipam.add(pool_start, -2)
            else:
                end = ipam.add(pool_start, -1)
        elif apply_supernet:
            end = ipam.add(start, 200)
        else:
            end = ipam.add(ipam.broadcast(self.cidr), -1)

        if end < start:
            raise SubnetExhaustedError(
                f"no room for a DHCP range in {self.net_name} {self.name}: {start} is past {end}")

        if self.name == UAI_SUBNET_NAME:
            self.reservation_start, self.reservation_end = start, end
        else:
            self.dhcp_start, self.dhcp_end = start, end

    def gen_interface_name(self) -> str:
        if len(self.net_name) > MAX_INTERFACE_NAME_LENGTH:
            raise ValueError(f"network name [{self.net_name}] is greater than {MAX_INTERFACE_NAME_LENGTH} bytes")
        if not self.net_name:
            raise ValueError(f"network name [{self.net_name}] is empty/nil")

        if self.vlan_id in (0, MTL_VLAN):
            self.interface_name = self.parent_device
        else:
            self.interface_name = f"{self.parent_device}.{self.net_name.lower()}0"
        return self.interface_name

    def todict(self) -> dict:
        rv = {
            "Name": self.name,
            "FullName": self.full_name,
            "CIDR": str(self.cidr),
            "VlanID": self.vlan_id,
            "Gateway": str(self.gateway) if self.gateway is not None else "",
        }
        optional = (
            ("CIDR6", self.cidr6),
            ("Gateway6", self.gateway6),
            ("DHCPStart", self.dhcp_start),
            ("DHCPEnd", self.dhcp_end),
            ("ReservationStart", self.reservation_start),
            ("ReservationEnd", self.reservation_end),
        )
        for key, value in optional:
            if value is not None:
                rv[key] = str(value)
        if self.reservations:
            rv["IPReservations"] = [r.todict() for r in self.reservations]
        if self.comment:
            rv["Comment"] = self.comment
        if self.metallb_pool_name:
            rv["MetalLBPoolName"] = self.metallb_pool_name
        return rv
