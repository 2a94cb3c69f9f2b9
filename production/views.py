"""
Production — Views

Batches and material issues are recorded through their services (one
ledger unit each) and are otherwise read-only: a batch is cancelled, not
edited or deleted.

@file production/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import MaterialIssue, ProductionBatch
from .serializers import (
    MaterialIssueCreateSerializer,
    MaterialIssueReadSerializer,
    ProductionBatchCreateSerializer,
    ProductionBatchDetailSerializer,
    ProductionBatchListSerializer,
)
from .services import IssueService, ProductionService


class ProductionBatchViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    filterset_fields = ['product', 'status', 'production_date']
    search_fields = ['batch_code', 'product__name', 'produced_by']
    ordering_fields = ['production_date', 'batch_code', 'current_stock', 'expiry_date']
    ordering = ['-production_date', '-created_at']

    def get_queryset(self):
        qs = ProductionBatch.objects.select_related('product')
        if self.action == 'retrieve':
            qs = qs.prefetch_related('materials_used__material')
        return qs

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return ProductionBatchDetailSerializer
        if self.action == 'create':
            return ProductionBatchCreateSerializer
        return ProductionBatchListSerializer

    def create(self, request, *args, **kwargs):
        ser = ProductionBatchCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        batch = ProductionService.record_batch(actor=request.user, **ser.validated_data)
        batch = self.get_queryset().prefetch_related('materials_used__material').get(pk=batch.pk)
        return Response(ProductionBatchDetailSerializer(batch).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        batch = ProductionService.cancel_batch(batch_id=pk, actor=request.user)
        batch.refresh_from_db()
        return Response(ProductionBatchListSerializer(batch).data)


class MaterialIssueViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAuthenticated]
    filterset_fields = ['department', 'issue_date']
    search_fields = ['issued_to', 'purpose']
    ordering_fields = ['issue_date', 'created_at']
    ordering = ['-issue_date', '-created_at']

    def get_queryset(self):
        return MaterialIssue.objects.prefetch_related('items__material')

    def get_serializer_class(self):
        if self.action == 'create':
            return MaterialIssueCreateSerializer
        return MaterialIssueReadSerializer

    def create(self, request, *args, **kwargs):
        ser = MaterialIssueCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        issue = IssueService.issue_materials(actor=request.user, **ser.validated_data)
        issue = self.get_queryset().get(pk=issue.pk)
        return Response(MaterialIssueReadSerializer(issue).data, status=status.HTTP_201_CREATED)
