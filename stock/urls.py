"""
Stock — URL Configuration

@file stock/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import StockBalanceView, StockMovementViewSet, StockReconciliationView

app_name = 'stock'

router = DefaultRouter()
router.register('movements', StockMovementViewSet, basename='movement')

urlpatterns = [
    path('', include(router.urls)),
    path('balance/<str:entity_type>/<uuid:entity_id>/', StockBalanceView.as_view(), name='balance'),
    path('reconcile/', StockReconciliationView.as_view(), name='reconcile-all'),
    path('reconcile/<str:entity_type>/<uuid:entity_id>/', StockReconciliationView.as_view(), name='reconcile'),
]
