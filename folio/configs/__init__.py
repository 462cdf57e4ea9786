#!/usr/bin/env python

"""
    Configurations for Folio

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import os
from decimal import Decimal


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
SCHEME = 'http'
HOST = os.environ.get('FOLIO_HOST', 'localhost')
PORT = int(os.environ.get('FOLIO_PORT', 8080))
WORKERS = int(os.environ.get('FOLIO_WORKERS', 1))
DEBUG = bool(int(os.environ.get('FOLIO_DEBUG', 0)))
LOG_LEVEL = os.environ.get('FOLIO_LOG_LEVEL', 'info')
SSL_CRT = os.environ.get('FOLIO_SSL_CRT')
SSL_KEY = os.environ.get('FOLIO_SSL_KEY')

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}
if SSL_CRT and SSL_KEY:
    OPTIONS['ssl_keyfile'] = SSL_KEY
    OPTIONS['ssl_certfile'] = SSL_CRT
    SCHEME = 'https'

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'folio'),
}

# Database configuration
DB_URI = os.environ.get('FOLIO_DB_URI') or (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

# Circulation policy
LATE_FEE_PER_DAY = Decimal(os.environ.get('LATE_FEE_PER_DAY', '1.00'))
MAX_LATE_DAYS = int(os.environ.get('MAX_LATE_DAYS', 90))
MAX_LATE_FEE = Decimal(os.environ.get('MAX_LATE_FEE', '50.00'))
MAX_BOOKS_PER_USER = int(os.environ.get('MAX_BOOKS_PER_USER', 5))
HOLD_HOURS = int(os.environ.get('HOLD_HOURS', 48))
RENEWAL_MIN_DAYS = int(os.environ.get('RENEWAL_MIN_DAYS', 1))
RENEWAL_MAX_DAYS = int(os.environ.get('RENEWAL_MAX_DAYS', 30))
DEFAULT_RENEWAL_DAYS = int(os.environ.get('DEFAULT_RENEWAL_DAYS', 14))
DUE_SOON_DAYS = int(os.environ.get('DUE_SOON_DAYS', 3))

# Rate limiting (token bucket per client)
RATE_LIMIT_CAPACITY = int(os.environ.get('RATE_LIMIT_CAPACITY', 60))
RATE_LIMIT_REFILL_PER_SECOND = float(os.environ.get('RATE_LIMIT_REFILL_PER_SECOND', 1.0))
RATE_LIMIT_MAX_CLIENTS = int(os.environ.get('RATE_LIMIT_MAX_CLIENTS', 10000))

# Scheduled endpoints & notification delivery
CRON_SECRET = os.environ.get('CRON_SECRET')
NOTIFY_WEBHOOK_URL = os.environ.get('NOTIFY_WEBHOOK_URL')
NOTIFY_TIMEOUT = float(os.environ.get('NOTIFY_TIMEOUT', 5))

__all__ = [
    'SCHEME', 'HOST', 'PORT', 'DEBUG', 'OPTIONS', 'DB_URI', 'DB_CONFIG', 'TESTING',
    'LATE_FEE_PER_DAY', 'MAX_LATE_DAYS', 'MAX_LATE_FEE', 'MAX_BOOKS_PER_USER',
    'HOLD_HOURS', 'RENEWAL_MIN_DAYS', 'RENEWAL_MAX_DAYS', 'DEFAULT_RENEWAL_DAYS',
    'DUE_SOON_DAYS', 'RATE_LIMIT_CAPACITY', 'RATE_LIMIT_REFILL_PER_SECOND', 'RATE_LIMIT_MAX_CLIENTS',
    'CRON_SECRET', 'NOTIFY_WEBHOOK_URL', 'NOTIFY_TIMEOUT',
]
