"""
ProdTrack — Root conftest for pytest

Shared fixtures available to all test modules.

@file conftest.py
"""

import pytest
from rest_framework.test import APIClient

from tests.factories import SuperuserFactory, UserFactory


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Active user with default password TestPass2026!"""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    """Superuser with default password TestPass2026!"""
    return SuperuserFactory()


@pytest.fixture
def authenticated_client(api_client, user):
    """API client authenticated as a regular user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as a superuser."""
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.fixture
def reject_negative_stock(settings):
    """Switch the ledger to reject deductions that would go below zero."""
    settings.STOCK_LEDGER = {**settings.STOCK_LEDGER, 'NEGATIVE_STOCK_POLICY': 'reject'}
    return settings.STOCK_LEDGER
