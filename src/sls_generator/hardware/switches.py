#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Management switches from switch_metadata.csv and their SLS hardware entries
"""

import dataclasses
import enum
import logging
from typing import Dict, List, Optional

from . import xname as xnames
from .types import (
    CabinetClass,
    CDUMgmtSwitchExtra,
    GenericHardware,
    MgmtHLSwitchExtra,
    MgmtSwitchExtra,
)
from ..errors import TopologyError

logger = logging.getLogger(__name__)


class SwitchBrand(str, enum.Enum):
    ARUBA = "Aruba"
    DELL = "Dell"
    MELLANOX = "Mellanox"


class SwitchType(str, enum.Enum):
    CDU = "CDU"
    LEAF_BMC = "LeafBMC"
    LEAF = "Leaf"
    SPINE = "Spine"
    EDGE = "Edge"


# reservation name prefix in network_hardware -> switch type, most specific first
RESERVATION_PREFIXES = (
    ("sw-leaf-bmc", SwitchType.LEAF_BMC),
    ("sw-spine", SwitchType.SPINE),
    ("sw-leaf", SwitchType.LEAF),
    ("sw-cdu", SwitchType.CDU),
)


@dataclasses.dataclass
class ManagementSwitch:
    xname: str
    type: SwitchType
    brand: Optional[SwitchBrand] = None
    model: str = ""
    # filled in from the network_hardware reservations
    name: str = ""
    ip: str = ""

    def normalize(self):
        self.xname = xnames.normalize(self.xname)

    def validate(self) -> List[str]:
        """ Problems with this switch, empty when it is usable
        """
        type_name = xnames.get_type(self.xname)
        if type_name is None:
            return [f"invalid xname for Switch: {self.xname}"]

        if self.type == SwitchType.LEAF_BMC:
            if type_name != "MgmtSwitch":
                return [f"invalid xname used for LeafBMC switch: {self.xname}, should use xXcCwW format"]
        elif self.type in (SwitchType.LEAF, SwitchType.SPINE, SwitchType.EDGE):
            if type_name != "MgmtHLSwitch":
                return [f"invalid xname used for {self.type.value} switch: {self.xname}, "
                        f"should use xXcChHsS format"]
        elif self.type == SwitchType.CDU:
            if type_name not in ("CDUMgmtSwitch", "MgmtHLSwitch"):
                return [f"invalid xname used for CDU switch: {self.xname}, should use dDwW format "
                        f"(if in an adjacent river cabinet to a TBD cabinet use the xXcChHsS format)"]
        return []


def switches_by_type(switches: List[ManagementSwitch], switch_type: SwitchType) -> List[str]:
    return [s.xname for s in switches if s.type == switch_type]


def extract_switches_from_reservations(subnet, metadata: List[ManagementSwitch]) -> List[ManagementSwitch]:
    """
    Recover the switch list from a network_hardware subnet: the reservation
    name gives the type, the comment the xname, and switch_metadata the
    brand and model.
    """
    known: Dict[str, ManagementSwitch] = {s.xname: s for s in metadata}
    found = []
    for reservation in subnet.reservations:
        switch_type = None
        for prefix, candidate in RESERVATION_PREFIXES:
            if reservation.name.startswith(prefix):
                switch_type = candidate
                break
        if switch_type is None:
            continue

        meta = known.get(reservation.comment)
        if meta is None or meta.brand is None:
            raise TopologyError(f"Couldn't determine switch brand for: {reservation.comment}")
        found.append(ManagementSwitch(
            xname=reservation.comment,
            type=switch_type,
            brand=meta.brand,
            model=meta.model,
            name=reservation.name,
            ip=str(reservation.ip_address),
        ))
    return found


def switch_to_hardware(switch: ManagementSwitch) -> GenericHardware:
    brand = switch.brand.value if switch.brand is not None else ""
    aliases = [switch.name] if switch.name else []

    if switch.type == SwitchType.LEAF_BMC:
        extra = MgmtSwitchExtra.for_switch(switch.xname, switch.ip, brand, switch.model, aliases)
        return GenericHardware.build(switch.xname, CabinetClass.RIVER, extra)

    if switch.type in (SwitchType.LEAF, SwitchType.SPINE):
        extra = MgmtHLSwitchExtra(ip4_addr=switch.ip, brand=brand, model=switch.model, aliases=aliases)
        return GenericHardware.build(switch.xname, CabinetClass.RIVER, extra)

    if switch.type == SwitchType.CDU:
        if xnames.get_type(switch.xname) == "MgmtHLSwitch":
            # racked in the river cabinet next to a hill cabinet
            extra = MgmtHLSwitchExtra(ip4_addr=switch.ip, brand=brand, model=switch.model, aliases=aliases)
            return GenericHardware.build(switch.xname, CabinetClass.RIVER, extra)
        extra = CDUMgmtSwitchExtra(brand=brand, model=switch.model, aliases=aliases)
        return GenericHardware.build(switch.xname, CabinetClass.MOUNTAIN, extra)

    raise TopologyError(f"unknown management switch type: {switch.type.value}")
