#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Address planning: CIDR arithmetic, VLAN claims, subnets and networks
"""

from .network import IPNetwork
from .subnet import IPReservation, IPSubnet
from .vlan import VlanAllocator

__all__ = ['IPNetwork', 'IPReservation', 'IPSubnet', 'VlanAllocator']
