import json
from django.contrib import admin
from django.utils.html import format_html
from .models import Order, OrderItem, ReturnRequest


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'product_name', 'unit_price', 'quantity', 'size', 'color', 'line_total')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'customer', 'status', 'subtotal', 'tax', 'shipping', 'total', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('order_number', 'id', 'customer__email')
    inlines = [OrderItemInline]

    # Status changes go through the API so they are validated and logged
    readonly_fields = (
        'id',
        'order_number',
        'customer',
        'status',
        'subtotal',
        'tax',
        'shipping',
        'total',
        'formatted_shipping_address',
        'notes',
        'created_at',
        'updated_at',
    )
    fieldsets = (
        ('Order Details', {
            'fields': ('order_number', 'id', 'status', 'customer', 'notes')
        }),
        ('Financials', {
            'fields': ('subtotal', 'tax', 'shipping', 'total')
        }),
        ('Shipping', {
            'fields': ('formatted_shipping_address',)
        }),
        ('System Data', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Shipping Address Snapshot")
    def formatted_shipping_address(self, obj):
        if not obj.shipping_address:
            return "-"
        return format_html("<pre>{}</pre>", json.dumps(obj.shipping_address, indent=2))


@admin.register(ReturnRequest)
class ReturnRequestAdmin(admin.ModelAdmin):
    list_display = ('order', 'customer', 'type', 'status', 'refund_status', 'refund_amount', 'created_at')
    list_filter = ('type', 'status', 'refund_status')
    search_fields = ('order__order_number', 'customer__email', 'tracking_number')
    readonly_fields = ('order', 'customer', 'type', 'reason', 'items', 'created_at', 'updated_at')
    fieldsets = (
        ('Request', {
            'fields': ('order', 'customer', 'type', 'reason', 'items')
        }),
        ('Processing', {
            'fields': ('status', 'refund_amount', 'refund_status', 'tracking_number', 'admin_notes')
        }),
        ('System Data', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False
