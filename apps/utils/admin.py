from django.contrib import admin
from .models import IdempotencyKey


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("key", "route", "caller", "response_status", "created_at", "expires_at")
    search_fields = ("key", "route", "caller")
    readonly_fields = ("key", "route", "caller", "request_hash", "response_status", "response_body", "created_at", "expires_at")
