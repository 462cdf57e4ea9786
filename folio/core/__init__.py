#!/usr/bin/env python

"""
    Core module for Folio: the database and the circulation services,
    wired with the configured policy.

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

from folio.core import db as database
from folio.core.fees import LateFeeCalculator
from folio.core.reservations import ReservationQueue
from folio.core.circulation import CirculationManager
from folio.core.renewals import RenewalWorkflow
from folio.core.notifications import NotificationDispatcher

db = database.init()
fees = LateFeeCalculator()
reservations = ReservationQueue()
circulation = CirculationManager(fees=fees, reservations=reservations)
renewals = RenewalWorkflow()
dispatcher = NotificationDispatcher()

__all__ = ["db", "fees", "reservations", "circulation", "renewals", "dispatcher"]
