#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Hardware graph: xnames, typed hardware entries, cabinets and switches
"""

from .types import CabinetClass, GenericHardware, HardwareType

__all__ = ['CabinetClass', 'GenericHardware', 'HardwareType']
