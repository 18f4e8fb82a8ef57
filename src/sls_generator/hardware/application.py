#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Application node configuration (application_node_config.yaml)
"""

import logging
from typing import Dict, List

from pydantic import BaseModel, Field

from . import xname as xnames
from ..errors import InputValidationError

logger = logging.getLogger(__name__)

DEFAULT_APPLICATION_PREFIXES = ["uan", "gn", "ln"]

DEFAULT_APPLICATION_SUBROLES = {
    "uan": "UAN",
    # ln nodes are UANs too
    "ln": "UAN",
    "gn": "Gateway",
}

# left in generated config files for the operator to replace
SUBROLE_PLACEHOLDER = "~fixme~"


class ApplicationNodeConfig(BaseModel):
    prefixes: List[str] = Field(default_factory=list, description="extra Source prefixes for application nodes")
    prefix_hsm_subroles: Dict[str, str] = Field(default_factory=dict, description="prefix to HSM subrole")
    aliases: Dict[str, List[str]] = Field(default_factory=dict, description="node xname to hostname aliases")

    class Config:
        extra = "forbid"

    def normalize(self):
        """ Lower case the prefixes and normalize the alias xnames
        """
        errors = []
        subroles = {}
        for prefix, subrole in self.prefix_hsm_subroles.items():
            normalized = prefix.lower()
            if normalized in subroles:
                errors.append(f"found a duplicate application node prefix after normalization - "
                              f"Prefix: {prefix}, Normalized Prefix: {normalized}")
            subroles[normalized] = subrole

        aliases = {}
        for xname, names in self.aliases.items():
            normalized = xnames.normalize(xname)
            if normalized in aliases:
                errors.append(f"found a duplicate application node xname after normalization - "
                              f"Xname: {xname}, Normalized Xname: {normalized}")
            aliases[normalized] = names

        if errors:
            raise InputValidationError("application node config is invalid", errors)

        self.prefixes = [p.lower() for p in self.prefixes]
        self.prefix_hsm_subroles = subroles
        self.aliases = aliases

    def validate_config(self) -> List[str]:
        errors = []
        for xname in self.aliases:
            type_name = xnames.get_type(xname)
            if type_name is None:
                errors.append(f"invalid xname for application node used as key in Aliases map: {xname}")
            elif type_name != "Node":
                errors.append(f"invalid type {type_name} for Application xname in Aliases map: {xname}")

        owners = {}
        for xname, names in self.aliases.items():
            for alias in names:
                if alias in owners:
                    errors.append(f"found duplicate application node alias: {alias} for xnames {owners[alias]} {xname}")
                owners[alias] = xname

        unmapped = sorted(p for p, subrole in self.prefix_hsm_subroles.items() if subrole == SUBROLE_PLACEHOLDER)
        if len(unmapped) > 1:
            errors.append(f"prefixes, '{unmapped}', have no subrole mapping. Replace `{SUBROLE_PLACEHOLDER}` "
                          f"placeholders with valid subroles in the Application Node Config file")
        elif unmapped:
            errors.append(f"prefix, '{unmapped}', has no subrole mapping. Replace `{SUBROLE_PLACEHOLDER}` "
                          f"placeholder with a valid subrole in the Application Node Config file")
        return errors

    def merged_prefixes(self) -> List[str]:
        """ User prefixes followed by the defaults, without repeats
        """
        merged = []
        for prefix in self.prefixes + DEFAULT_APPLICATION_PREFIXES:
            if prefix not in merged:
                merged.append(prefix)
        return merged

    def merged_subroles(self) -> Dict[str, str]:
        """ Default subroles overridden by the user mapping
        """
        subroles = dict(DEFAULT_APPLICATION_SUBROLES)
        subroles.update(self.prefix_hsm_subroles)
        return subroles
