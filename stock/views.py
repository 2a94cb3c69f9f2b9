"""
Stock — Views

Movement endpoints delegate every write to LedgerService; nothing here
touches a balance directly.

@file stock/views.py
"""

from rest_framework import status, viewsets
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import StockMovement
from .serializers import (
    StockBalanceSerializer,
    StockMovementCreateSerializer,
    StockMovementReadSerializer,
    StockMovementUpdateSerializer,
    StockReconciliationSerializer,
)
from .services import LedgerService


class StockMovementViewSet(viewsets.ModelViewSet):
    """
    Movements of any stock entity.

    POST applies the movement's effect, PUT/PATCH re-applies the
    difference between the old and new effect, DELETE reverses it.
    """

    permission_classes = [IsAuthenticated]
    queryset = StockMovement.objects.all()
    filterset_fields = ['entity_type', 'entity_id', 'movement_type', 'occurred_on', 'reference_type']
    search_fields = ['reference', 'notes']
    ordering_fields = ['occurred_on', 'created_at', 'quantity']
    ordering = ['-occurred_on', '-created_at']

    def get_serializer_class(self):
        if self.action == 'create':
            return StockMovementCreateSerializer
        if self.action in ('update', 'partial_update'):
            return StockMovementUpdateSerializer
        return StockMovementReadSerializer

    def create(self, request, *args, **kwargs):
        ser = StockMovementCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        movement = LedgerService.create_movement(actor=request.user, **ser.validated_data)
        return Response(StockMovementReadSerializer(movement).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        ser = StockMovementUpdateSerializer(data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        movement = LedgerService.edit_movement(
            entity_type=instance.entity_type,
            entity_id=instance.entity_id,
            movement_id=instance.pk,
            actor=request.user,
            **ser.validated_data,
        )
        return Response(StockMovementReadSerializer(movement).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        LedgerService.delete_movement(
            entity_type=instance.entity_type,
            entity_id=instance.entity_id,
            movement_id=instance.pk,
            actor=request.user,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class StockBalanceView(APIView):
    """GET /stock/balance/{entity_type}/{entity_id}/ — current balance of one entity."""

    permission_classes = [IsAuthenticated]

    def get(self, request, entity_type, entity_id):
        balance = LedgerService.balance(entity_type=entity_type, entity_id=entity_id)
        return Response(StockBalanceSerializer(balance).data)


class StockReconciliationView(APIView):
    """
    GET /stock/reconcile/                         — every drifted entity
    GET /stock/reconcile/{entity_type}/{entity_id}/ — one entity
    """

    permission_classes = [IsAuthenticated, IsAdminUser]

    def get(self, request, entity_type=None, entity_id=None):
        if entity_type is None:
            report = LedgerService.reconcile_all()
            return Response(StockReconciliationSerializer(report, many=True).data)
        report = LedgerService.reconcile(entity_type=entity_type, entity_id=entity_id)
        return Response(StockReconciliationSerializer(report).data)
