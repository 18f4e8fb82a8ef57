#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Hardware graph generation

River hardware is read from the cabling rows of hmn_connections.json. The
Source column says what a row is, the rack and location columns give most of
the xname, and the destination columns the switch port it plugs into. A row
named as another row's SourceParent is the controller of a multi-node
enclosure.

Liquid-cooled hardware is not cabled per node. It is synthesized from the
cabinet templates, Hill cabinets first, then Mountain, in xname order.
"""

import dataclasses
import logging
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from . import classify
from . import xname as xnames
from .application import ApplicationNodeConfig
from .cabinets import CabinetTemplate
from .types import (
    CabinetClass,
    ConnectorExtra,
    GenericHardware,
    HardwareType,
    MgmtSwitchExtra,
    NodeExtra,
    PDUExtra,
    RouterBMCExtra,
)
from .switches import SwitchBrand
from ..errors import TopologyError
from ..state import SLSState

logger = logging.getLogger(__name__)

U_PATTERN = re.compile(r"[a-zA-Z]*(\d+)([a-zA-Z]*)")
PORT_PATTERN = re.compile(r"[a-zA-Z]*(\d+)")

# nodes per multi-node enclosure, the BMC ordinal of a child is (NID - 1) % NODES_PER_ENCLOSURE + 1
NODES_PER_ENCLOSURE = 4

# BMC ordinal of the controller heading a multi-node enclosure
ENCLOSURE_BMC = 999

LIQUID_COOLED_SLOTS = 8
LIQUID_COOLED_BMCS = 2
LIQUID_COOLED_NODES = 2

# connectors point at these directly, anything else at its parent
CONTROLLER_TYPES = (
    HardwareType.ChassisBMC,
    HardwareType.NodeBMC,
    HardwareType.RouterBMC,
    HardwareType.CabinetPDUController,
)


class HMNRow(BaseModel):
    """ One cabling row of hmn_connections.json
    """
    source: str = Field("", alias="Source")
    source_rack: str = Field("", alias="SourceRack")
    source_location: str = Field("", alias="SourceLocation")
    source_sub_location: str = Field("", alias="SourceSubLocation")
    source_parent: str = Field("", alias="SourceParent")
    destination_rack: str = Field("", alias="DestinationRack")
    destination_location: str = Field("", alias="DestinationLocation")
    destination_port: str = Field("", alias="DestinationPort")

    class Config:
        populate_by_name = True


@dataclasses.dataclass
class SkippedRow:
    source: str
    rack: str
    location: str
    reason: str

    def todict(self) -> dict:
        return {"Source": self.source, "SourceRack": self.rack, "SourceLocation": self.location,
                "Reason": self.reason}


@dataclasses.dataclass
class GeneratorInput:
    cabinets: Dict[CabinetClass, Dict[str, CabinetTemplate]]
    management_switches: Dict[str, GenericHardware] = dataclasses.field(default_factory=dict)
    application_config: ApplicationNodeConfig = dataclasses.field(default_factory=ApplicationNodeConfig)
    mountain_starting_nid: int = 1000
    platform_version: str = "1.7"
    networks: Dict = dataclasses.field(default_factory=dict)

    def cabinets_of(self, cabinet_class: CabinetClass) -> Dict[str, CabinetTemplate]:
        return self.cabinets.get(cabinet_class, {})


def _strip_number(value: str, prefix: str) -> int:
    """ "x3000" -> 3000 for prefix "x", "u13" -> 13 for prefix "u"
    """
    text = value.strip().lower()
    if text.startswith(prefix):
        text = text[len(prefix):]
    return int(text)


class StateGenerator:
    """
    Builds the hardware graph for one run. Management NIDs and Mountain NIDs
    are handed out in row order and cabinet order, so a generator is used
    for a single generate() call.
    """

    def __init__(self, inputs: GeneratorInput, rows: List[HMNRow]):
        self.inputs = inputs
        self.rows = rows
        # SourceParent name -> U of the parent, None until resolved
        self.node_parents: Dict[str, Optional[int]] = {}
        self.current_management_nid = classify.MANAGEMENT_NID_START
        self.current_mountain_nid = inputs.mountain_starting_nid
        self.skipped: List[SkippedRow] = []

    def generate(self) -> SLSState:
        logger.info("Beginning SLS configuration generation.")
        return SLSState(hardware=self.build_hardware(), networks=dict(self.inputs.networks))

    def build_hardware(self) -> Dict[str, GenericHardware]:
        switches = self.inputs.management_switches
        self._check_river_switches(switches)

        cabinet_hardware = {
            xname: template.to_hardware()
            for xname, template in self.inputs.cabinets_of(CabinetClass.RIVER).items()
        }

        self.node_parents = {row.source_parent: None for row in self.rows if row.source_parent}

        node_hardware: Dict[str, GenericHardware] = {}
        connection_hardware: Dict[str, GenericHardware] = {}
        for row in self.rows:
            hardware = self.river_hardware_from_row(row)
            if hardware is None:
                continue

            self.can_contain_air_cooled_hardware(self._cabinet_from_rack(row.source_rack, row))
            if hardware.xname in node_hardware:
                raise TopologyError(f"row {row.source} generates {hardware.xname}, which an earlier row already did")
            node_hardware[hardware.xname] = hardware

            port = row.destination_port.strip()
            if port:
                connection = self.switch_connection_for(hardware, row)
                if connection.parent not in switches:
                    raise TopologyError(f"Failed to find switch {connection.parent} in SLS Input State, "
                                        f"needed by {connection.xname}")
                connection_hardware[connection.xname] = connection

        for cabinet_class in (CabinetClass.HILL, CabinetClass.MOUNTAIN):
            templates = self.inputs.cabinets_of(cabinet_class)
            for xname in sorted(templates):
                for hardware in self.liquid_cooled_hardware(templates[xname]):
                    node_hardware[hardware.xname] = hardware

        all_hardware: Dict[str, GenericHardware] = {}
        for section in (cabinet_hardware, node_hardware, connection_hardware, switches):
            overlap = set(all_hardware).intersection(section)
            if overlap:
                raise TopologyError(f"hardware generated more than once: {', '.join(sorted(overlap))}")
            all_hardware.update(section)
        return all_hardware

    def _check_river_switches(self, switches: Dict[str, GenericHardware]):
        for switch in switches.values():
            # CDU switches hang off a CDU, there is no cabinet to check
            if switch.cabinet_class != CabinetClass.RIVER:
                continue
            if switch.type == HardwareType.MgmtSwitch:
                cabinet = xnames.get_parent(switch.parent)
            elif switch.type == HardwareType.MgmtHLSwitch:
                cabinet = xnames.get_parent(xnames.get_parent(switch.parent))
            else:
                raise TopologyError(f"Unknown river management switch type {switch.type.name} for {switch.xname}")
            try:
                self.can_contain_air_cooled_hardware(cabinet)
            except TopologyError as exc:
                raise TopologyError(f"Parent cabinet for {switch.type.name} {switch.xname} "
                                    f"can not contain air-cooled hardware: {exc}") from exc

    def can_contain_air_cooled_hardware(self, cabinet_xname: str) -> bool:
        """ True for river cabinets and EX2500 cabinets with an air-cooled chassis, raises otherwise
        """
        if cabinet_xname in self.inputs.cabinets_of(CabinetClass.RIVER):
            return True

        hill = self.inputs.cabinets_of(CabinetClass.HILL).get(cabinet_xname)
        if hill is not None:
            if hill.model == "EX2500":
                if hill.air_cooled_chassis:
                    return True
                raise TopologyError(f"hill cabinet (EX2500) {cabinet_xname} does not contain any air-cooled chassis")
            raise TopologyError(f"hill cabinet (non EX2500) {cabinet_xname} cannot contain air-cooled hardware")

        if cabinet_xname in self.inputs.cabinets_of(CabinetClass.MOUNTAIN):
            raise TopologyError(f"mountain cabinet {cabinet_xname} cannot contain air-cooled hardware")

        raise TopologyError(f"unknown cabinet {cabinet_xname}")

    def river_chassis(self, cabinet_xname: str) -> str:
        self.can_contain_air_cooled_hardware(cabinet_xname)
        hill = self.inputs.cabinets_of(CabinetClass.HILL).get(cabinet_xname)
        chassis_id = hill.air_cooled_chassis[0] if hill is not None else 0
        return xnames.chassis(cabinet_xname, chassis_id)

    @staticmethod
    def _cabinet_from_rack(rack: str, row: HMNRow) -> str:
        try:
            return xnames.cabinet(_strip_number(rack, "x"))
        except ValueError:
            raise TopologyError(f"Failed to parse cabinet from rack {rack!r} of row {row.source}")

    @staticmethod
    def _position(row: HMNRow):
        """ Rack U and BMC ordinal, an L or R sub location (or suffix on the U) picks BMC 1 or 2
        """
        match = U_PATTERN.search(row.source_location)
        if match is None:
            raise TopologyError(f"did not find U number in source location {row.source_location!r} "
                                f"of row {row.source}")
        dangling = match.group(2).lower()
        sub_location = row.source_sub_location.lower()
        bmc = 0
        if sub_location == "l" or dangling == "l":
            bmc = 1
        elif sub_location == "r" or dangling == "r":
            bmc = 2
        return int(match.group(1)), bmc

    def _skip(self, row: HMNRow, reason: str, level=logging.WARNING):
        logger.log(level, f"skipping {row.source} ({row.source_rack} {row.source_location}): {reason}")
        self.skipped.append(SkippedRow(row.source, row.source_rack, row.source_location, reason))

    def river_hardware_from_row(self, row: HMNRow) -> Optional[GenericHardware]:
        kind = classify.classify_source(row.source)
        if kind == classify.SourceKind.ROUTER_BMC:
            return self.router_bmc_from_row(row)
        if kind == classify.SourceKind.PDU:
            return self.pdu_from_row(row)
        if kind == classify.SourceKind.COOLING_DOOR:
            self._skip(row, "cooling door found, but xname does not yet exist for cooling doors")
            return None
        if kind == classify.SourceKind.MGMT_SWITCH:
            self._skip(row, "management switch information comes solely from switch_metadata.csv")
            return None
        return self.node_from_row(row)

    def router_bmc_from_row(self, row: HMNRow) -> GenericHardware:
        chassis = self.river_chassis(self._cabinet_from_rack(row.source_rack, row))
        u, bmc = self._position(row)
        bmc_xname = xnames.router_bmc(chassis, u, bmc)
        return GenericHardware.build(bmc_xname, CabinetClass.RIVER, RouterBMCExtra.for_bmc(bmc_xname))

    def pdu_from_row(self, row: HMNRow) -> GenericHardware:
        # the PDU number becomes the cabinet PDU controller number
        cabinet = self._cabinet_from_rack(row.source_rack, row)
        pdu_xname = xnames.pdu_controller(cabinet, classify.pdu_number(row.source))
        return GenericHardware.build(pdu_xname, CabinetClass.RIVER, PDUExtra())

    def _find_row(self, source: str) -> Optional[HMNRow]:
        for row in self.rows:
            if row.source.lower() == source.lower():
                return row
        return None

    def _parent_u(self, parent: str) -> int:
        u = self.node_parents.get(parent)
        if u is not None:
            return u
        parent_row = self._find_row(parent)
        if parent_row is None:
            raise TopologyError(f"Failed to find matching row for specified parent {parent}")
        try:
            u = _strip_number(parent_row.source_location, "u")
        except ValueError:
            raise TopologyError(f"Failed to parse parent U number {parent_row.source_location!r} of {parent}")
        self.node_parents[parent] = u
        return u

    def node_from_row(self, row: HMNRow) -> Optional[GenericHardware]:
        node_class, reason = classify.classify_node(
            row.source, self.inputs.application_config, self.inputs.platform_version)
        if node_class is None:
            level = logging.INFO if reason.startswith("FabricManager") else logging.WARNING
            self._skip(row, reason, level)
            return None

        extra = NodeExtra(role=node_class.role, sub_role=node_class.sub_role)
        if node_class.numbering == classify.Numbering.MANAGEMENT:
            extra.nid = self.current_management_nid
            extra.aliases.append(node_class.alias_format.format(node_class.number))
            self.current_management_nid += 1
        elif node_class.numbering == classify.Numbering.COMPUTE:
            extra.nid = node_class.number
            extra.aliases.append(node_class.alias_format.format(node_class.number))

        if row.source_parent.strip():
            u = self._parent_u(row.source_parent)
            # only numbered nodes get an enclosure ordinal
            bmc = (extra.nid - 1) % NODES_PER_ENCLOSURE + 1 if extra.nid > 0 else 0
        else:
            u, bmc = self._position(row)

        chassis = self.river_chassis(self._cabinet_from_rack(row.source_rack, row))
        module = xnames.compute_module(chassis, u)

        if row.source in self.node_parents:
            # the controller of a multi-node enclosure, not a node
            return GenericHardware.build(xnames.node_bmc(module, ENCLOSURE_BMC), CabinetClass.RIVER,
                                         hardware_type=HardwareType.ChassisBMC)

        node_xname = xnames.node(xnames.node_bmc(module, bmc))
        if extra.role == "Application":
            extra.aliases.extend(self.inputs.application_config.aliases.get(node_xname, []))
        return GenericHardware.build(node_xname, CabinetClass.RIVER, extra)

    def switch_connection_for(self, hardware: GenericHardware, row: HMNRow) -> GenericHardware:
        if hardware.type in CONTROLLER_TYPES:
            destination = hardware.xname
        else:
            destination = hardware.parent

        chassis = self.river_chassis(self._cabinet_from_rack(row.destination_rack, row))
        try:
            slot = _strip_number(row.destination_location, "u")
        except ValueError:
            raise TopologyError(f"Failed to parse destination location {row.destination_location!r} "
                                f"of row {row.source}")
        switch_xname = xnames.mgmt_switch(chassis, slot)

        # the jack is written with a j or a p in front
        match = PORT_PATTERN.search(row.destination_port)
        if match is None:
            raise TopologyError(f"did not find port number in destination port {row.destination_port!r} "
                                f"of row {row.source}")
        port = int(match.group(1))
        connector_xname = xnames.mgmt_switch_connector(switch_xname, port)

        switch = self.inputs.management_switches.get(switch_xname)
        if switch is None:
            raise TopologyError(f"Unable to find management switch {switch_xname} for connector "
                                f"{connector_xname} to {destination}")
        if not isinstance(switch.extra, MgmtSwitchExtra):
            raise TopologyError(f"Unable to get management switch extra properties of {switch_xname} for "
                                f"connector {connector_xname} to {destination}")

        brand = switch.extra.brand
        if not brand:
            raise TopologyError(f"Management Switch brand not provided for switch {switch_xname}")
        if brand == SwitchBrand.DELL.value:
            vendor_name = f"ethernet1/1/{port}"
        elif brand == SwitchBrand.ARUBA.value:
            vendor_name = f"1/1/{port}"
        elif brand == SwitchBrand.MELLANOX.value:
            # a BMC cabled to a spine or leaf switch
            raise TopologyError(f"Currently do not support MgmtSwitchConnector for Mellanox switches: "
                                f"{connector_xname} to {destination}")
        else:
            raise TopologyError(f"Unknown Management Switch brand {brand} for switch {switch_xname}")

        return GenericHardware.build(connector_xname, CabinetClass.RIVER,
                                     ConnectorExtra(node_nics=[destination], vendor_name=vendor_name))

    def liquid_cooled_hardware(self, template: CabinetTemplate) -> List[GenericHardware]:
        hardware = [template.to_hardware()]
        for chassis_id in template.liquid_cooled_chassis:
            chassis = xnames.chassis(template.xname, chassis_id)
            hardware.append(GenericHardware.build(chassis, template.cabinet_class))
            hardware.append(GenericHardware.build(xnames.chassis_bmc(chassis, 0), template.cabinet_class))
            for slot in range(LIQUID_COOLED_SLOTS):
                module = xnames.compute_module(chassis, slot)
                for bmc in range(LIQUID_COOLED_BMCS):
                    for node in range(LIQUID_COOLED_NODES):
                        nid = self.current_mountain_nid
                        hardware.append(GenericHardware.build(
                            xnames.node(xnames.node_bmc(module, bmc), node),
                            template.cabinet_class,
                            NodeExtra(role="Compute", nid=nid, aliases=[f"nid{nid:06d}"]),
                        ))
                        self.current_mountain_nid += 1
        return hardware
