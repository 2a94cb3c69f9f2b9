"""
Inventory — URL Configuration

@file inventory/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import MaterialViewSet, ProductViewSet

app_name = 'inventory'

router = DefaultRouter()
router.register('materials', MaterialViewSet, basename='material')
router.register('products', ProductViewSet, basename='product')

urlpatterns = [
    path('', include(router.urls)),
]
