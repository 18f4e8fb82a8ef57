#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Error types raised while generating SLS state

Every generation failure is fatal. The builtin bases match what callers
already catch for the same condition.
"""

from typing import Iterable, List


class SLSGeneratorError(Exception):
    """ Root of all generation errors
    """


class MalformedCIDRError(SLSGeneratorError, ValueError):
    """ A prefix or address string could not be parsed
    """


class AddressFamilyError(SLSGeneratorError, ValueError):
    """ IPv4 and IPv6 values were mixed in one operation
    """


class VlanAllocationError(SLSGeneratorError, ValueError):
    """ Base for VLAN registry failures
    """


class VlanAlreadyAllocatedError(VlanAllocationError):
    pass


class VlanOutOfRangeError(VlanAllocationError):
    pass


class SubnetExhaustedError(SLSGeneratorError, ValueError):
    """ No address or block is left for the request
    """


class DuplicateReservationError(SLSGeneratorError, ValueError):
    pass


class ReservationNotFoundError(SLSGeneratorError, KeyError):
    __str__ = SLSGeneratorError.__str__


class SubnetNotFoundError(SLSGeneratorError, KeyError):
    __str__ = SLSGeneratorError.__str__


class InvalidXnameError(SLSGeneratorError, ValueError):
    pass


class TopologyError(SLSGeneratorError, ValueError):
    """ Seed data cannot produce a physically valid topology
    """


class MissingXnameError(SLSGeneratorError, KeyError):
    """ A seed NCN has no counterpart in the generated hardware
    """
    __str__ = SLSGeneratorError.__str__


class InputValidationError(SLSGeneratorError, ValueError):
    """ Aggregated validation problems for one input

    The message is the summary line, errors holds every individual problem.
    """

    def __init__(self, message: str, errors: Iterable[str] = ()):
        self.errors: List[str] = list(errors)
        super().__init__(message)

    def __str__(self):
        if not self.errors:
            return super().__str__()
        lines = [super().__str__()] + [f"  {err}" for err in self.errors]
        return "\n".join(lines)
