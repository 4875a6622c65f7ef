from django.contrib import admin

from .models import AdminAccount


@admin.register(AdminAccount)
class AdminAccountAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "role", "created_at")
    search_fields = ("name",)
    exclude = ("password_hash",)
    ordering = ("id",)
