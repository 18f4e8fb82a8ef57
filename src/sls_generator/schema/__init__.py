#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
SLS output schema
"""

from .schema import SLSStateSchema

__all__ = ['SLSStateSchema']
