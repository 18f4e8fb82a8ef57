#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Named networks owning a list of subnets
"""

import copy
import dataclasses
import ipaddress
import logging
from typing import Callable, List, Optional

from . import ipam
from .subnet import IPSubnet
from ..errors import SubnetExhaustedError, SubnetNotFoundError, TopologyError, VlanAlreadyAllocatedError

logger = logging.getLogger(__name__)

SUPERNET_SUBNETS = (
    "bootstrap_dhcp",
    "network_hardware",
    "can_metallb_static_pool",
    "can_metallb_address_pool",
)

# smallest block add_biggest_subnet will settle for
SMALLEST_BOOTSTRAP_PREFIXLEN = 28


@dataclasses.dataclass
class IPNetwork:
    name: str
    full_name: str
    cidr: ipaddress.IPv4Network
    vlan_range: List[int] = dataclasses.field(default_factory=list)
    mtu: int = 9000
    net_type: str = "ethernet"
    comment: str = ""
    peer_asn: int = 0
    my_asn: int = 0
    system_default_route: str = ""
    subnets: List[IPSubnet] = dataclasses.field(default_factory=list)
    cidr6: Optional[ipaddress.IPv6Network] = None
    parent_device: str = ""
    # VLANs per cabinet subnets are drawn from, vlan_range narrows once they exist
    cabinet_vlan_pool: List[int] = dataclasses.field(default_factory=list)

    def copy(self) -> "IPNetwork":
        return copy.deepcopy(self)

    def allocated_subnets(self) -> List[ipaddress.IPv4Network]:
        return [s.network for s in self.subnets]

    def allocated_vlans(self) -> List[int]:
        return [s.vlan_id for s in self.subnets if s.vlan_id > 0]

    def _new_subnet(self, name: str, cidr, vlan_id: int) -> IPSubnet:
        iface = ipam.parse_prefix(str(cidr)) if not isinstance(cidr, ipaddress.IPv4Interface) else cidr
        subnet = IPSubnet(
            name=name,
            cidr=iface,
            vlan_id=vlan_id,
            gateway=ipam.gateway_ip(iface),
            net_name=self.name,
            parent_device=self.parent_device,
        )
        self.subnets.append(subnet)
        return subnet

    def add_subnet_by_cidr(self, cidr, name: str, vlan_id: int) -> IPSubnet:
        iface = ipam.parse_prefix(str(cidr))
        if not ipam.contains_subnet(self.cidr, iface):
            raise TopologyError(f"subnet {iface} is not part of {self.cidr}")
        return self._new_subnet(name, iface, vlan_id)

    def add_subnet(self, prefixlen: int, name: str, vlan_id: int) -> IPSubnet:
        """ Carve the first free /prefixlen block of the network into a new subnet
        """
        try:
            block = ipam.free_subnet(self.cidr, prefixlen, self.allocated_subnets())
        except SubnetExhaustedError as exc:
            raise SubnetExhaustedError(f"{self.name}: {exc}") from exc
        return self._new_subnet(name, ipaddress.IPv4Interface(str(block)), vlan_id)

    def add_biggest_subnet(self, prefixlen: int, name: str, vlan_id: int) -> IPSubnet:
        """ Like add_subnet, settling for smaller blocks down to a /28
        """
        for tried in range(prefixlen, SMALLEST_BOOTSTRAP_PREFIXLEN + 1):
            try:
                return self.add_subnet(tried, name, vlan_id)
            except SubnetExhaustedError:
                logger.debug(f"{self.name}: no /{tried} left for {name}")
        raise SubnetExhaustedError(
            f"no room for {name} subnet within {self.name} "
            f"(tried from /{prefixlen} to /{SMALLEST_BOOTSTRAP_PREFIXLEN})")

    def lookup_subnet(self, name: str) -> IPSubnet:
        found = [s for s in self.subnets if s.name == name]
        if not found:
            raise SubnetNotFoundError(f'subnet not found "{name}" in {self.name}')
        if len(found) > 1:
            raise TopologyError(f"found {len(found)} subnets instead of just one named {name} in {self.name}")
        return found[0]

    def subnet_by_name(self, name: str) -> Optional[IPSubnet]:
        for subnet in self.subnets:
            if subnet.name.lower() == name.lower():
                return subnet
        return None

    def gen_cabinet_subnets(self, cabinets, prefixlen: int, cabinet_filter: Callable) -> List[IPSubnet]:
        """
        Add one cabinet_<id> subnet per cabinet passing the filter, in
        ascending cabinet ID order. A cabinet without an explicit VLAN for
        this network gets the lowest VLAN of the range no other subnet uses.
        """
        selected = sorted(
            [(group, detail) for group in cabinets for detail in group.cabinet_details
             if cabinet_filter(group, detail)],
            key=lambda pair: pair[1].id)

        added = []
        for group, detail in selected:
            vlan_id = detail.vlan_for_network(self.name)
            if vlan_id:
                if vlan_id in self.allocated_vlans():
                    raise VlanAlreadyAllocatedError(
                        f"{self.name}: VLAN {vlan_id} for cabinet {detail.id} is already used by another subnet")
            else:
                vlan_id = self._next_cabinet_vlan()

            subnet = self.add_subnet(prefixlen, f"cabinet_{detail.id}", vlan_id)
            subnet.update_dhcp_range(False)
            added.append(subnet)
            logger.debug(f"{self.name}: cabinet_{detail.id} {subnet.cidr} vlan {vlan_id}")

        if added:
            used = [s.vlan_id for s in self.subnets if s.name.startswith("cabinet_")]
            self.vlan_range = [min(used), max(used)]
        return added

    def _next_cabinet_vlan(self) -> int:
        if not self.cabinet_vlan_pool:
            self.cabinet_vlan_pool = list(self.vlan_range)
        if not self.cabinet_vlan_pool:
            raise TopologyError(f"{self.name} has no VLAN range for per cabinet subnets")
        low = self.cabinet_vlan_pool[0]
        high = self.cabinet_vlan_pool[-1]
        used = set(self.allocated_vlans())
        for vlan_id in range(low, high + 1):
            if vlan_id not in used:
                return vlan_id
        raise SubnetExhaustedError(f"{self.name} has no unused VLAN left in {low}-{high}")

    def apply_supernet(self):
        """
        Give the standard subnets the network's mask and gateway so NCNs and
        switches share one broadcast domain. Host parts are kept.
        """
        gateway = ipam.gateway_ip(self.cidr)
        for name in SUPERNET_SUBNETS:
            subnet = self.subnet_by_name(name)
            if subnet is None:
                continue
            subnet.gateway = gateway
            subnet.cidr = ipaddress.IPv4Interface(f"{subnet.cidr.ip}/{self.cidr.prefixlen}")

    def todict(self) -> dict:
        extra = {
            "CIDR": str(self.cidr),
            "VlanRange": list(self.vlan_range),
            "MTU": self.mtu,
            "Subnets": [s.todict() for s in self.subnets],
        }
        if self.cidr6 is not None:
            extra["CIDR6"] = str(self.cidr6)
        if self.comment:
            extra["Comment"] = self.comment
        if self.peer_asn:
            extra["PeerASN"] = self.peer_asn
        if self.my_asn:
            extra["MyASN"] = self.my_asn
        if self.system_default_route:
            extra["SystemDefaultRoute"] = self.system_default_route

        ip_ranges = [str(self.cidr)]
        if self.cidr6 is not None:
            ip_ranges.append(str(self.cidr6))
        return {
            "Name": self.name,
            "FullName": self.full_name,
            "IPRanges": ip_ranges,
            "Type": self.net_type,
            "ExtraProperties": extra,
        }
