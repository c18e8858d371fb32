"""
Public identifiers for movements, alerts and generated batches.

    new_movement_id()  # 'MOV-1760871234567-k3j9x0a2b'
    new_alert_id()     # 'ALERT-1760871234567-p0q8z1m4c'
    new_batch_id()     # 'MGXH2K3Q9ZP4'
"""

import time

from django.utils.crypto import get_random_string

LOWER = '0123456789abcdefghijklmnopqrstuvwxyz'
UPPER = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'

MOVEMENT_PREFIX = 'MOV'
ALERT_PREFIX = 'ALERT'
BATCH_ID_LENGTH = 12


def _prefixed(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{get_random_string(9, LOWER)}"


def new_movement_id() -> str:
    return _prefixed(MOVEMENT_PREFIX)


def new_alert_id() -> str:
    return _prefixed(ALERT_PREFIX)


def new_batch_id() -> str:
    """Base-36 timestamp followed by random characters, 12 chars upper-case."""
    millis = int(time.time() * 1000)
    stamp = ''
    while millis:
        millis, digit = divmod(millis, 36)
        stamp = UPPER[digit] + stamp
    return (stamp + get_random_string(BATCH_ID_LENGTH, UPPER))[:BATCH_ID_LENGTH]
