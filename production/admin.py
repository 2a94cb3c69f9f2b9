"""
Production — Django Admin Configuration

Batches and issues are recorded through the API so that material stock is
consumed in the same transaction; the admin only browses them.

@file production/admin.py
"""

from django.contrib import admin

from .models import BatchMaterial, MaterialIssue, MaterialIssueItem, ProductionBatch


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class BatchMaterialInline(ReadOnlyInline):
    model = BatchMaterial
    fields = ('material', 'quantity', 'cost', 'supplier', 'movement')
    readonly_fields = fields


class MaterialIssueItemInline(ReadOnlyInline):
    model = MaterialIssueItem
    fields = ('material', 'quantity', 'movement')
    readonly_fields = fields


@admin.register(ProductionBatch)
class ProductionBatchAdmin(admin.ModelAdmin):
    list_display = (
        'batch_code', 'product', 'production_date', 'expiry_date',
        'initial_stock', 'current_stock', 'unit', 'unit_cost', 'status',
    )
    list_filter = ('status', 'product', 'production_date')
    search_fields = ('batch_code', 'product__name', 'produced_by')
    date_hierarchy = 'production_date'
    inlines = [BatchMaterialInline]
    ordering = ('-production_date',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(MaterialIssue)
class MaterialIssueAdmin(admin.ModelAdmin):
    list_display = ('issue_date', 'issued_to', 'purpose', 'department', 'created_by')
    list_filter = ('department', 'issue_date')
    search_fields = ('issued_to', 'purpose')
    date_hierarchy = 'issue_date'
    inlines = [MaterialIssueItemInline]
    ordering = ('-issue_date',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
