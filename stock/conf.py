"""
Stock — Ledger Settings

Reads settings.STOCK_LEDGER with fallbacks from core.constants.

@file stock/conf.py
"""

from django.conf import settings

from core.constants import STOCK_LEDGER_DEFAULTS


def ledger_setting(name: str):
    overrides = getattr(settings, 'STOCK_LEDGER', None) or {}
    return overrides.get(name, STOCK_LEDGER_DEFAULTS[name])
