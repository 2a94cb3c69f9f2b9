"""
Tests — inventory API endpoints (materials, products).

@file inventory/tests/test_views.py
"""

from decimal import Decimal

import pytest
from django.urls import reverse

from inventory.models import Material, Product
from tests.factories import MaterialFactory, ProductFactory


pytestmark = pytest.mark.django_db


class TestMaterialEndpoints:

    def test_list_requires_auth(self, api_client):
        resp = api_client.get(reverse('api-v1:inventory:material-list'))
        assert resp.status_code == 401

    def test_list_hides_archived(self, authenticated_client):
        MaterialFactory.create_batch(2)
        MaterialFactory().soft_delete()
        resp = authenticated_client.get(reverse('api-v1:inventory:material-list'))
        assert resp.status_code == 200
        assert resp.data['count'] == 2

    def test_create_with_opening_stock(self, authenticated_client):
        resp = authenticated_client.post(reverse('api-v1:inventory:material-list'), {
            'name': 'Sugar',
            'code': 'mat-sugar',
            'category': 'INGREDIENT',
            'unit': 'kg',
            'initial_stock': '40',
            'reorder_level': '5',
        }, format='json')
        assert resp.status_code == 201
        assert resp.data['code'] == 'MAT-SUGAR'
        assert resp.data['current_stock'] == Decimal('40')
        assert resp.data['is_low_stock'] is False

    def test_update_ignores_stock_fields(self, authenticated_client):
        material = MaterialFactory(initial_stock=Decimal('10'))
        url = reverse('api-v1:inventory:material-detail', args=[material.pk])
        resp = authenticated_client.patch(url, {'name': 'Brown sugar', 'current_stock': '999'}, format='json')
        assert resp.status_code == 200
        assert resp.data['name'] == 'Brown sugar'
        assert resp.data['current_stock'] == Decimal('10')

    def test_delete_archives(self, authenticated_client):
        material = MaterialFactory()
        url = reverse('api-v1:inventory:material-detail', args=[material.pk])
        resp = authenticated_client.delete(url)
        assert resp.status_code == 204
        assert Material.objects.get(pk=material.pk).is_deleted

    def test_low_stock_action(self, authenticated_client):
        MaterialFactory(initial_stock=Decimal('2'), reorder_level=Decimal('5'))
        MaterialFactory(initial_stock=Decimal('20'), reorder_level=Decimal('5'))
        resp = authenticated_client.get(reverse('api-v1:inventory:material-low-stock'))
        assert resp.status_code == 200
        assert resp.data['count'] == 1

    def test_low_stock_query_param(self, authenticated_client):
        MaterialFactory(initial_stock=Decimal('2'), reorder_level=Decimal('5'))
        MaterialFactory(initial_stock=Decimal('20'), reorder_level=Decimal('5'))
        resp = authenticated_client.get(reverse('api-v1:inventory:material-list'), {'low_stock': 'true'})
        assert resp.data['count'] == 1

    def test_search_by_supplier(self, authenticated_client):
        MaterialFactory(last_supplier='Acme Mills')
        MaterialFactory(last_supplier='Other')
        resp = authenticated_client.get(reverse('api-v1:inventory:material-list'), {'search': 'Acme'})
        assert resp.data['count'] == 1


class TestProductEndpoints:

    def test_create_product(self, authenticated_client):
        resp = authenticated_client.post(reverse('api-v1:inventory:product-list'), {
            'name': 'Bread', 'code': 'prd-bread', 'unit': 'loaf', 'shelf_life_days': 3,
        }, format='json')
        assert resp.status_code == 201
        assert Product.objects.get(code='PRD-BREAD').unit == 'loaf'

    def test_delete_archives(self, authenticated_client):
        product = ProductFactory()
        resp = authenticated_client.delete(reverse('api-v1:inventory:product-detail', args=[product.pk]))
        assert resp.status_code == 204
        product.refresh_from_db()
        assert product.is_deleted
