#!/usr/bin/env python

"""
    Folio, a circulation engine for shared library collections

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = '0.1.0'
