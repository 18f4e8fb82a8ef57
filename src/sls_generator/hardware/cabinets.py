#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Cabinet inventory and cabinet templates

Cabinets come in groups of one kind (river, hill, EX2500, ...). Each group
either lists its cabinets or is numbered sequentially from a starting ID.
"""

import dataclasses
import enum
import logging
from typing import Callable, Dict, List, Optional

from . import xname as xnames
from .types import CabinetClass, CabinetExtra, CabinetNetwork, GenericHardware
from ..errors import TopologyError

logger = logging.getLogger(__name__)

DEFAULT_MOUNTAIN_CHASSIS = list(range(8))
DEFAULT_HILL_CHASSIS = [1, 3]
DEFAULT_RIVER_CHASSIS = [0]
# slingshot tooling expects the air-cooled chassis of an EX2500 at c4
EX2500_AIR_COOLED_CHASSIS = 4

CABINET_NETWORK_NAMES = ("NMN", "HMN", "NMN_MTN", "HMN_MTN", "NMN_RVR", "HMN_RVR")


class CabinetKind(str, enum.Enum):
    RIVER = "river"
    HILL = "hill"
    MOUNTAIN = "mountain"
    EX2000 = "EX2000"
    EX2500 = "EX2500"
    EX3000 = "EX3000"
    EX4000 = "EX4000"

    @property
    def cabinet_class(self) -> CabinetClass:
        return _KIND_CLASSES[self]

    @property
    def is_model(self) -> bool:
        return self.value.startswith("EX")


_KIND_CLASSES = {
    CabinetKind.RIVER: CabinetClass.RIVER,
    CabinetKind.HILL: CabinetClass.HILL,
    CabinetKind.EX2000: CabinetClass.HILL,
    CabinetKind.EX2500: CabinetClass.HILL,
    CabinetKind.MOUNTAIN: CabinetClass.MOUNTAIN,
    CabinetKind.EX3000: CabinetClass.MOUNTAIN,
    CabinetKind.EX4000: CabinetClass.MOUNTAIN,
}


@dataclasses.dataclass
class ChassisCount:
    liquid_cooled: int = 0
    air_cooled: int = 0


@dataclasses.dataclass
class CabinetDetail:
    id: int
    chassis_count: Optional[ChassisCount] = None
    nmn_subnet: str = ""
    nmn_vlan_id: int = 0
    hmn_subnet: str = ""
    hmn_vlan_id: int = 0

    def vlan_for_network(self, network_name: str) -> int:
        """ Explicit VLAN for the network family, 0 when none was given
        """
        if network_name.startswith("NMN"):
            return self.nmn_vlan_id
        if network_name.startswith("HMN"):
            return self.hmn_vlan_id
        return 0


@dataclasses.dataclass
class CabinetGroupDetail:
    kind: CabinetKind
    cabinets: int = 0
    starting_cabinet: int = 0
    cabinet_details: List[CabinetDetail] = dataclasses.field(default_factory=list)

    @property
    def cabinet_class(self) -> CabinetClass:
        return self.kind.cabinet_class

    def populate_ids(self):
        """ Fill in sequential IDs from starting_cabinet up to the declared count
        """
        for idx in range(self.cabinets):
            if idx < len(self.cabinet_details):
                if not self.cabinet_details[idx].id:
                    self.cabinet_details[idx].id = self.starting_cabinet + idx
            else:
                self.cabinet_details.append(CabinetDetail(id=self.starting_cabinet + idx))
        self.cabinets = max(self.cabinets, len(self.cabinet_details))

    def cabinet_ids(self) -> List[int]:
        return [d.id for d in self.cabinet_details]

    def details_by_id(self) -> Dict[int, CabinetDetail]:
        return {d.id: d for d in self.cabinet_details}


CabinetFilter = Callable[[CabinetGroupDetail, CabinetDetail], bool]


def filter_class(cabinet_class: CabinetClass) -> CabinetFilter:
    return lambda group, detail: group.cabinet_class == cabinet_class


def filter_kind(kind: CabinetKind) -> CabinetFilter:
    return lambda group, detail: group.kind == kind


def filter_air_cooled_count(count: int) -> CabinetFilter:
    return lambda group, detail: (detail.chassis_count is not None
                                  and detail.chassis_count.air_cooled == count)


def filter_liquid_cooled_count(count: int) -> CabinetFilter:
    return lambda group, detail: (detail.chassis_count is not None
                                  and detail.chassis_count.liquid_cooled == count)


def filter_and(*filters: CabinetFilter) -> CabinetFilter:
    return lambda group, detail: all(f(group, detail) for f in filters)


def filter_or(*filters: CabinetFilter) -> CabinetFilter:
    return lambda group, detail: any(f(group, detail) for f in filters)


def cabinet_counts(groups: List[CabinetGroupDetail]) -> Dict[str, int]:
    counts = {c.value: 0 for c in CabinetClass}
    for group in groups:
        counts[group.cabinet_class.value] += len(group.cabinet_details)
    return counts


@dataclasses.dataclass
class CabinetTemplate:
    xname: str
    cabinet_class: CabinetClass
    model: str = ""
    networks: Dict[str, Dict[str, CabinetNetwork]] = dataclasses.field(default_factory=dict)
    liquid_cooled_chassis: List[int] = dataclasses.field(default_factory=list)
    air_cooled_chassis: List[int] = dataclasses.field(default_factory=list)

    @property
    def cabinet_id(self) -> int:
        return xnames.ordinals(self.xname)[0]

    def to_hardware(self) -> GenericHardware:
        return GenericHardware.build(
            self.xname, self.cabinet_class,
            CabinetExtra(model=self.model, networks=self.networks))


def _cabinet_networks(cabinet_id: int, networks) -> Dict[str, CabinetNetwork]:
    found = {}
    for net_name in CABINET_NETWORK_NAMES:
        network = networks.get(net_name)
        if network is None:
            continue
        subnet = network.subnet_by_name(f"cabinet_{cabinet_id}")
        if subnet is None:
            continue
        key = net_name.replace("_MTN", "").replace("_RVR", "")
        found[key] = CabinetNetwork(cidr=str(subnet.cidr), gateway=str(subnet.gateway), vlan=subnet.vlan_id)
    return found


def _hill_chassis(template: CabinetTemplate, kind: CabinetKind, detail: Optional[CabinetDetail]):
    template.air_cooled_chassis = []
    template.liquid_cooled_chassis = list(DEFAULT_HILL_CHASSIS)
    if detail is None:
        return

    if kind != CabinetKind.EX2500:
        if detail.chassis_count is not None:
            raise TopologyError(
                f"Overriding air or liquid cooled chassis counts is not permitted for hill (EX2000) "
                f"cabinets ({template.xname}). Refusing to continue")
        return

    count = detail.chassis_count
    if count is None:
        raise TopologyError(
            f"EX2500 cabinets require chassis counts to be specified via cabinets.yaml ({template.xname}), "
            f"for example chassis-count: {{air-cooled: 0, liquid-cooled: 3}}")

    if count.air_cooled == 0:
        if not 1 <= count.liquid_cooled <= 3:
            raise TopologyError(
                f"Invalid liquid-cooled chassis count specified for hill (EX2500) cabinet {template.xname}. "
                f"Given {count.liquid_cooled}, expected between 1 and 3. Refusing to continue")
        template.liquid_cooled_chassis = list(range(count.liquid_cooled))
    elif count.air_cooled == 1:
        if count.liquid_cooled == 0:
            # an EX2500 can also be a plain 19 inch rack
            template.air_cooled_chassis = [EX2500_AIR_COOLED_CHASSIS]
            template.liquid_cooled_chassis = []
        elif count.liquid_cooled == 1:
            template.air_cooled_chassis = [EX2500_AIR_COOLED_CHASSIS]
            template.liquid_cooled_chassis = [0]
        else:
            raise TopologyError(
                f"Invalid liquid-cooled chassis count specified for hill (EX2500) cabinet {template.xname}. "
                f"Given {count.liquid_cooled}, expected 1. EX2500 cabinets with 1 air-cooled chassis can only "
                f"have 1 liquid-cooled chassis. Refusing to continue")
    else:
        raise TopologyError(
            f"Invalid air-cooled chassis count specified for hill (EX2500) cabinet {template.xname}. "
            f"Given {count.air_cooled}, expected 0 or 1. Refusing to continue")


def gen_cabinet_templates(groups: List[CabinetGroupDetail], networks) -> Dict[CabinetClass, Dict[str, CabinetTemplate]]:
    """
    Build the template for every cabinet: class, model, chassis lists and the
    cabinet's per-cabinet NMN/HMN subnets.
    """
    templates: Dict[CabinetClass, Dict[str, CabinetTemplate]] = {c: {} for c in CabinetClass}

    for group in groups:
        details = group.details_by_id()
        for cabinet_id in group.cabinet_ids():
            cabinet_networks = _cabinet_networks(cabinet_id, networks)
            template = CabinetTemplate(
                xname=xnames.cabinet(cabinet_id),
                cabinet_class=group.cabinet_class,
                model=group.kind.value if group.kind.is_model else "",
                networks={"cn": cabinet_networks},
            )
            detail = details.get(cabinet_id)

            if template.cabinet_class == CabinetClass.RIVER:
                template.networks["ncn"] = cabinet_networks
                template.air_cooled_chassis = list(DEFAULT_RIVER_CHASSIS)
                if detail is not None and detail.chassis_count is not None:
                    raise TopologyError(
                        f"Overriding air or liquid cooled chassis counts is not permitted for river cabinets "
                        f"({template.xname}). Refusing to continue")
            elif template.cabinet_class == CabinetClass.HILL:
                _hill_chassis(template, group.kind, detail)
            else:
                template.liquid_cooled_chassis = list(DEFAULT_MOUNTAIN_CHASSIS)
                if detail is not None and detail.chassis_count is not None:
                    raise TopologyError(
                        f"Overriding air or liquid cooled chassis counts is not permitted for mountain cabinets "
                        f"({template.xname}). Refusing to continue")

            if template.xname in templates[template.cabinet_class]:
                raise TopologyError(f"cabinet {template.xname} is declared more than once")
            templates[template.cabinet_class][template.xname] = template
            logger.debug(f"cabinet {template.xname} {template.cabinet_class.value} "
                         f"air {template.air_cooled_chassis} liquid {template.liquid_cooled_chassis}")

    return templates
