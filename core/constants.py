"""
Core — Constants

Shared constants: audit action codes, pagination limits, ledger defaults.

@file core/constants.py
"""

from decimal import Decimal


# ---------------------------------------------------------------------------
# Audit actions (mirror AuditLog.ActionChoices)
# ---------------------------------------------------------------------------

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_DELETE = 'DELETE'
AUDIT_ACTION_STOCK_CLAMPED = 'STOCK_CLAMPED'


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Stock ledger defaults (overridable through settings.STOCK_LEDGER)
# ---------------------------------------------------------------------------

NEGATIVE_STOCK_CLAMP = 'clamp'
NEGATIVE_STOCK_REJECT = 'reject'

STOCK_LEDGER_DEFAULTS = {
    'MAX_ATTEMPTS': 5,
    'RETRY_BACKOFF_SECONDS': 0.05,
    'ATTEMPT_TIMEOUT_MS': 5000,
    'NEGATIVE_STOCK_POLICY': NEGATIVE_STOCK_CLAMP,
}

# Smallest stock quantity stored (3 decimal places on every stock column).
STOCK_QUANTUM = Decimal('0.001')
