"""
Inventory — Views

DRF ViewSets for materials and products. Balances are read-only here;
stock changes are posted to /stock/movements/.

@file inventory/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Material, Product
from .serializers import (
    MaterialCreateSerializer,
    MaterialReadSerializer,
    MaterialUpdateSerializer,
    ProductReadSerializer,
    ProductWriteSerializer,
)
from .services import MaterialService, ProductService


class MaterialViewSet(viewsets.ModelViewSet):
    """
    CRUD for materials. DELETE archives (soft delete) so the movement log
    keeps a valid owner.
    """

    permission_classes = [IsAuthenticated]
    filterset_fields = ['category', 'unit']
    search_fields = ['name', 'code', 'last_supplier']
    ordering_fields = ['name', 'code', 'current_stock', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        if self.request.query_params.get('low_stock') in ('1', 'true', 'True'):
            return MaterialService.low_stock()
        return Material.objects.filter(is_deleted=False)

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve', 'low_stock'):
            return MaterialReadSerializer
        if self.action == 'create':
            return MaterialCreateSerializer
        return MaterialUpdateSerializer

    def perform_destroy(self, instance):
        MaterialService.archive_material(material_id=instance.pk, actor=self.request.user)

    def create(self, request, *args, **kwargs):
        ser = MaterialCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        material = MaterialService.create_material(actor=request.user, **ser.validated_data)
        return Response(MaterialReadSerializer(material).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        ser = MaterialUpdateSerializer(instance, data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        material = MaterialService.update_material(
            material_id=instance.pk, actor=request.user, **ser.validated_data,
        )
        return Response(MaterialReadSerializer(material).data)

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        materials = MaterialService.low_stock().order_by('name')
        page = self.paginate_queryset(materials)
        if page is not None:
            ser = MaterialReadSerializer(page, many=True)
            return self.get_paginated_response(ser.data)
        ser = MaterialReadSerializer(materials, many=True)
        return Response({'success': True, 'data': ser.data})


class ProductViewSet(viewsets.ModelViewSet):
    """CRUD for product definitions."""

    permission_classes = [IsAuthenticated]
    search_fields = ['name', 'code']
    ordering_fields = ['name', 'code', 'created_at']
    ordering = ['name']

    def get_queryset(self):
        return Product.objects.filter(is_deleted=False)

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return ProductReadSerializer
        return ProductWriteSerializer

    def perform_create(self, serializer):
        serializer.instance = ProductService.create_product(
            actor=self.request.user, **serializer.validated_data,
        )

    def perform_update(self, serializer):
        serializer.instance = ProductService.update_product(
            product_id=self.get_object().pk,
            actor=self.request.user,
            **serializer.validated_data,
        )

    def perform_destroy(self, instance):
        instance.soft_delete(user=self.request.user)
