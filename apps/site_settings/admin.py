from django.contrib import admin
from .models import SiteSettings


@admin.register(SiteSettings)
class SiteSettingsAdmin(admin.ModelAdmin):
    list_display = ("store_name", "currency", "tax_rate", "shipping_fee", "free_shipping_threshold", "updated_at")
    fieldsets = (
        ("Store", {
            "fields": ("store_name", "contact_email", "contact_phone", "address")
        }),
        ("Business", {
            "fields": ("currency", "tax_rate", "shipping_fee", "free_shipping_threshold"),
            "description": "Not applied at checkout. Orders use a fixed 8% tax and a flat 10 shipping fee below the free-shipping threshold of 100.",
        }),
    )

    def has_add_permission(self, request):
        return not SiteSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
