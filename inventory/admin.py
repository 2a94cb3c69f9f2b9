"""
Inventory — Django Admin Configuration

Materials and products. Stock fields are read-only: balances move only
through stock movements.

@file inventory/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import Material, Product


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = (
        'code', 'name', 'category', 'current_stock', 'unit',
        'reorder_level', 'last_supplier', 'is_deleted',
    )
    list_filter = ('category', 'unit', 'is_deleted')
    search_fields = ('code', 'name', 'last_supplier')
    readonly_fields = (
        'id', 'initial_stock', 'current_stock', 'version', 'last_supplier',
        'created_by', 'created_at', 'updated_by', 'updated_at',
        'deleted_by', 'deleted_at',
    )
    ordering = ('name',)
    list_per_page = 50

    fieldsets = (
        (_('Material'), {
            'fields': ('id', 'code', 'name', 'category', 'unit', 'description'),
        }),
        (_('Stock'), {
            'fields': ('initial_stock', 'current_stock', 'reorder_level', 'last_supplier', 'version'),
        }),
        (_('Audit'), {
            'fields': ('created_by', 'created_at', 'updated_by', 'updated_at', 'is_deleted', 'deleted_by', 'deleted_at'),
            'classes': ('collapse',),
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            # Opening balance is entered once, on creation.
            return tuple(f for f in self.readonly_fields if f != 'initial_stock')
        return self.readonly_fields


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'unit', 'shelf_life_days', 'selling_price', 'is_deleted')
    list_filter = ('unit', 'is_deleted')
    search_fields = ('code', 'name')
    readonly_fields = ('id', 'created_by', 'created_at', 'updated_by', 'updated_at', 'deleted_by', 'deleted_at')
    ordering = ('name',)
