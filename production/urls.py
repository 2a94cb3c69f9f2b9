"""
Production — URL Configuration

@file production/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import MaterialIssueViewSet, ProductionBatchViewSet

app_name = 'production'

router = DefaultRouter()
router.register('batches', ProductionBatchViewSet, basename='batch')
router.register('issues', MaterialIssueViewSet, basename='issue')

urlpatterns = [
    path('', include(router.urls)),
]
