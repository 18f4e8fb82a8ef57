#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Readers for the seed files of a generation run

Each reader normalizes what it loaded and reports every invalid entry of
the file in one InputValidationError.
"""

import csv
import dataclasses
import json
import logging
import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..common.yamlhandler import CustomYamlLoader
from ..errors import InputValidationError
from ..hardware.application import ApplicationNodeConfig
from ..hardware.cabinets import CabinetDetail, CabinetGroupDetail, CabinetKind, ChassisCount
from ..hardware.generator import HMNRow
from ..hardware.switches import ManagementSwitch, SwitchBrand, SwitchType
from ..reconcile.ncn import UnresolvedNCN

logger = logging.getLogger(__name__)

NCN_METADATA = "ncn_metadata.csv"
SWITCH_METADATA = "switch_metadata.csv"
HMN_CONNECTIONS = "hmn_connections.json"
CABINETS_YAML = "cabinets.yaml"
APPLICATION_NODE_CONFIG = "application_node_config.yaml"

# CSV header -> UnresolvedNCN field, current layout first
NCN_CSV_FORMATS = (
    {
        "Xname": "xname",
        "Role": "role",
        "Subrole": "subrole",
        "BMC MAC": "bmc_mac",
        "Bootstrap MAC": "nmn_mac",
        "Bond0 MAC0": "bond0_mac0",
        "Bond0 MAC1": "bond0_mac1",
    },
    {
        "NCN xname": "xname",
        "NCN Role": "role",
        "NCN Subrole": "subrole",
        "BMC MAC": "bmc_mac",
        "BMC Switch Port": "bmc_port",
        "NMN MAC": "nmn_mac",
        "NMN Switch Port": "nmn_port",
    },
)

SWITCH_CSV_HEADERS = ("Switch Xname", "Type", "Brand")

# cabinet kinds sized from the configuration when cabinets.yaml leaves them out
CONFIGURED_KINDS = (CabinetKind.RIVER, CabinetKind.HILL, CabinetKind.MOUNTAIN)


def _read_csv(path: str):
    with open(path, newline="") as csv_file:
        reader = csv.DictReader(csv_file)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        rows = [{(k or "").strip(): (v or "").strip() for k, v in row.items()} for row in reader]
    return headers, rows


def read_ncn_metadata(path: str) -> List[UnresolvedNCN]:
    """ NCNs from ncn_metadata.csv in either header layout
    """
    headers, rows = _read_csv(path)
    for columns in NCN_CSV_FORMATS:
        if set(columns).issubset(headers):
            break
    else:
        raise InputValidationError(
            f"Unable to parse {path}, does your header match the preferred style? "
            f"{','.join(NCN_CSV_FORMATS[0])}")

    ncns = []
    for row in rows:
        ncn = UnresolvedNCN(**{field: row.get(header, "") for header, field in columns.items()})
        ncn.normalize()
        ncns.append(ncn)

    if not ncns:
        raise InputValidationError("unable to extract NCNs from ncn metadata csv")

    errors = []
    for ncn in ncns:
        errors.extend(ncn.validate())
    if errors:
        raise InputValidationError("ncn_metadata.csv contains invalid NCN data", errors)

    logger.info(f"read {len(ncns)} NCNs from {path}")
    return ncns


def read_switch_metadata(path: str) -> List[ManagementSwitch]:
    headers, rows = _read_csv(path)
    missing = [h for h in SWITCH_CSV_HEADERS if h not in headers]
    if missing:
        raise InputValidationError(
            f"Unable to parse {path}, does your header match the preferred style? "
            f"Switch Xname,Type,Brand,Model", missing)

    switches = []
    errors = []
    for row in rows:
        try:
            switch_type = SwitchType(row["Type"])
        except ValueError:
            errors.append(f"invalid Switch Type for {row['Switch Xname']}: {row['Type']}")
            continue
        try:
            brand = SwitchBrand(row["Brand"])
        except ValueError:
            errors.append(f"invalid Switch Brand for {row['Switch Xname']}: {row['Brand']}")
            continue
        switch = ManagementSwitch(xname=row["Switch Xname"], type=switch_type, brand=brand,
                                  model=row.get("Model", ""))
        switch.normalize()
        errors.extend(switch.validate())
        switches.append(switch)

    if not switches and not errors:
        raise InputValidationError("unable to extract Switches from switch metadata csv")
    if errors:
        raise InputValidationError("switch_metadata.csv contains invalid switch data", errors)

    logger.info(f"read {len(switches)} management switches from {path}")
    return switches


def read_hmn_connections(path: str) -> List[HMNRow]:
    with open(path) as json_file:
        try:
            data = json.load(json_file)
        except json.JSONDecodeError as exc:
            raise InputValidationError(f"Unable to parse {path}", [str(exc)]) from exc
    if not isinstance(data, list):
        raise InputValidationError(f"{path} must hold a list of cabling rows")

    rows = []
    errors = []
    for idx, item in enumerate(data):
        try:
            rows.append(HMNRow.model_validate(item))
        except ValidationError as exc:
            errors.append(f"row {idx}: {exc}")
    if errors:
        raise InputValidationError("hmn_connections.json contains invalid rows", errors)

    logger.info(f"read {len(rows)} cabling rows from {path}")
    return rows


class _ChassisCountEntry(BaseModel):
    liquid_cooled: int = Field(0, alias="liquid-cooled")
    air_cooled: int = Field(0, alias="air-cooled")

    class Config:
        extra = "forbid"


class _CabinetEntry(BaseModel):
    id: int = Field(0, description="cabinet ID, sequential from starting_id when left out")
    chassis_count: Optional[_ChassisCountEntry] = Field(None, alias="chassis-count")
    nmn_subnet: str = Field("", alias="nmn-subnet")
    nmn_vlan: int = Field(0, alias="nmn-vlan")
    hmn_subnet: str = Field("", alias="hmn-subnet")
    hmn_vlan: int = Field(0, alias="hmn-vlan")

    class Config:
        extra = "forbid"


class _CabinetGroupEntry(BaseModel):
    type: CabinetKind
    total_number: int = 0
    starting_id: int = 0
    cabinets: List[_CabinetEntry] = Field(default_factory=list)

    class Config:
        extra = "forbid"


class _CabinetFile(BaseModel):
    cabinets: List[_CabinetGroupEntry] = Field(default_factory=list)

    class Config:
        extra = "forbid"


def _group_from_entry(entry: _CabinetGroupEntry) -> CabinetGroupDetail:
    details = []
    for cab in entry.cabinets:
        count = None
        if cab.chassis_count is not None:
            count = ChassisCount(liquid_cooled=cab.chassis_count.liquid_cooled,
                                 air_cooled=cab.chassis_count.air_cooled)
        details.append(CabinetDetail(id=cab.id, chassis_count=count, nmn_subnet=cab.nmn_subnet,
                                     nmn_vlan_id=cab.nmn_vlan, hmn_subnet=cab.hmn_subnet,
                                     hmn_vlan_id=cab.hmn_vlan))
    return CabinetGroupDetail(
        kind=entry.type,
        # listed cabinets win over the declared total
        cabinets=len(details) if details else entry.total_number,
        starting_cabinet=entry.starting_id,
        cabinet_details=details,
    )


def build_cabinet_groups(config, file_groups: List[CabinetGroupDetail]) -> List[CabinetGroupDetail]:
    """
    Groups from cabinets.yaml plus a sequentially numbered group for every
    configured kind the file does not mention. Cabinet IDs must be unique
    across all groups.
    """
    groups = list(file_groups)
    present = {g.kind for g in groups}
    for kind in CONFIGURED_KINDS:
        if kind in present:
            continue
        groups.append(CabinetGroupDetail(
            kind=kind,
            cabinets=getattr(config, f"{kind.value}_cabinets"),
            starting_cabinet=getattr(config, f"starting_{kind.value}_cabinet"),
        ))
    for group in groups:
        group.populate_ids()

    seen = set()
    duplicates = []
    for group in groups:
        for cabinet_id in group.cabinet_ids():
            if cabinet_id in seen:
                duplicates.append(f"Found duplicate cabinet id: {cabinet_id}")
            seen.add(cabinet_id)
    if duplicates:
        raise InputValidationError("cabinet definitions are invalid", duplicates)
    return groups


def read_cabinets(path: Optional[str], config) -> List[CabinetGroupDetail]:
    file_groups = []
    if path:
        with open(path) as yaml_file:
            data = yaml.load(yaml_file, Loader=CustomYamlLoader) or {}
        try:
            parsed = _CabinetFile.model_validate(data)
        except ValidationError as exc:
            raise InputValidationError(f"Unable to parse cabinets-yaml file: {path}", [str(exc)]) from exc
        file_groups = [_group_from_entry(entry) for entry in parsed.cabinets]
        logger.info(f"using cabinet definitions from {path}")
    return build_cabinet_groups(config, file_groups)


def read_application_node_config(path: Optional[str]) -> ApplicationNodeConfig:
    app_config = ApplicationNodeConfig()
    if path:
        logger.info(f"Using application node config: {path}")
        with open(path) as yaml_file:
            data = yaml.load(yaml_file, Loader=CustomYamlLoader) or {}
        try:
            app_config = ApplicationNodeConfig.model_validate(data)
        except ValidationError as exc:
            raise InputValidationError(f"Unable to parse application-node-config file: {path}",
                                       [str(exc)]) from exc

    app_config.normalize()
    errors = app_config.validate_config()
    if errors:
        raise InputValidationError("Failed to validate application node config", errors)
    return app_config


@dataclasses.dataclass
class SeedInputs:
    ncns: List[UnresolvedNCN]
    switches: List[ManagementSwitch]
    rows: List[HMNRow]
    cabinets: List[CabinetGroupDetail]
    application_config: ApplicationNodeConfig = dataclasses.field(default_factory=ApplicationNodeConfig)


def _optional(directory: str, filename: str) -> Optional[str]:
    path = os.path.join(directory, filename)
    return path if os.path.exists(path) else None


def seed_file_paths(directory: str) -> Dict[str, Optional[str]]:
    return {
        NCN_METADATA: os.path.join(directory, NCN_METADATA),
        SWITCH_METADATA: os.path.join(directory, SWITCH_METADATA),
        HMN_CONNECTIONS: os.path.join(directory, HMN_CONNECTIONS),
        CABINETS_YAML: _optional(directory, CABINETS_YAML),
        APPLICATION_NODE_CONFIG: _optional(directory, APPLICATION_NODE_CONFIG),
    }


def load_seed_inputs(directory: str, config) -> SeedInputs:
    """
    Read every seed file of a directory. Problems from all files are
    collected before failing.
    """
    paths = seed_file_paths(directory)
    loaded = {}
    errors = []
    readers = (
        ("ncns", read_ncn_metadata, (paths[NCN_METADATA],)),
        ("switches", read_switch_metadata, (paths[SWITCH_METADATA],)),
        ("rows", read_hmn_connections, (paths[HMN_CONNECTIONS],)),
        ("cabinets", read_cabinets, (paths[CABINETS_YAML], config)),
        ("application_config", read_application_node_config, (paths[APPLICATION_NODE_CONFIG],)),
    )
    for name, reader, args in readers:
        try:
            loaded[name] = reader(*args)
        except InputValidationError as exc:
            errors.append(str(exc))
        except OSError as exc:
            errors.append(f"unable to read {args[0]}: {exc}")
    if errors:
        raise InputValidationError("seed files are invalid", errors)
    return SeedInputs(**loaded)
