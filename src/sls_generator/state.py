#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
The combined SLS state: hardware keyed by xname and networks keyed by name
"""

import dataclasses
from typing import Dict

from .hardware.types import GenericHardware
from .networking.network import IPNetwork


@dataclasses.dataclass
class SLSState:
    hardware: Dict[str, GenericHardware] = dataclasses.field(default_factory=dict)
    networks: Dict[str, IPNetwork] = dataclasses.field(default_factory=dict)

    def todict(self) -> dict:
        return {
            "Hardware": {xname: hw.todict() for xname, hw in sorted(self.hardware.items())},
            "Networks": {name: net.todict() for name, net in sorted(self.networks.items())},
        }
