#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
VLAN registry for one planning run
"""

import logging
from typing import List

from ..errors import VlanAlreadyAllocatedError, VlanOutOfRangeError, VlanAllocationError

logger = logging.getLogger(__name__)

MIN_VLAN = 0
MAX_VLAN = 4094


class VlanAllocator:
    """
    Claims VLAN IDs and inclusive ranges. A claim never overlaps an earlier
    one and a range claim is all-or-nothing. Build one per run and pass it
    to whatever needs to claim VLANs.
    """

    def __init__(self):
        self._claimed = set()

    @staticmethod
    def _check_bounds(vlan_id: int):
        if not MIN_VLAN <= vlan_id <= MAX_VLAN:
            raise VlanOutOfRangeError(f"VLAN out of range: {vlan_id} not in [{MIN_VLAN}, {MAX_VLAN}]")

    def is_allocated(self, vlan_id: int) -> bool:
        """ True when the ID is claimed or can never be claimed
        """
        if not MIN_VLAN <= vlan_id <= MAX_VLAN:
            return True
        return vlan_id in self._claimed

    def allocate(self, vlan_id: int):
        self._check_bounds(vlan_id)
        if vlan_id in self._claimed:
            raise VlanAlreadyAllocatedError(f"VLAN already used: {vlan_id}")
        self._claimed.add(vlan_id)
        logger.debug(f"allocated VLAN {vlan_id}")

    def allocate_range(self, low: int, high: int):
        self._check_bounds(low)
        self._check_bounds(high)
        if low > high:
            raise VlanAllocationError(f"VLAN range is bad - start is larger than end: {low} > {high}")

        wanted = range(low, high + 1)
        used = [vlan_id for vlan_id in wanted if vlan_id in self._claimed]
        if used:
            raise VlanAlreadyAllocatedError(f"VLANs already used: {used}")

        self._claimed.update(wanted)
        logger.debug(f"allocated VLAN range {low}-{high}")

    def allocated(self) -> List[int]:
        return sorted(self._claimed)
