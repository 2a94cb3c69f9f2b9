"""
Stock — Django Admin Configuration

Read-only list of StockMovement. Movements are created, edited and deleted
through the API so that the owning balance moves with them.

@file stock/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        'occurred_on', 'entity_type', 'entity_id', 'movement_type', 'direction',
        'quantity', 'reference', 'reference_type', 'created_by', 'created_at',
    )
    list_filter = ('entity_type', 'movement_type', 'direction', 'occurred_on')
    search_fields = ('reference', 'notes', 'reference_type')
    readonly_fields = (
        'id', 'entity_type', 'entity_id', 'movement_type', 'direction',
        'quantity', 'occurred_on', 'reference', 'notes',
        'reference_id', 'reference_type',
        'created_by', 'created_at', 'updated_by', 'updated_at',
    )
    list_select_related = ('created_by',)
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'occurred_on'
    ordering = ('-occurred_on', '-created_at')

    fieldsets = (
        (_('Movement'), {
            'fields': ('id', 'entity_type', 'entity_id', 'movement_type', 'direction', 'quantity', 'occurred_on'),
        }),
        (_('Reference'), {
            'fields': ('reference', 'notes', 'reference_id', 'reference_type'),
        }),
        (_('Audit'), {
            'fields': ('created_by', 'created_at', 'updated_by', 'updated_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False  # balance would not follow

    def has_delete_permission(self, request, obj=None):
        return False  # balance would not follow
