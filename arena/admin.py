from django.contrib import admin

from .models import Battle, Character


@admin.register(Character)
class CharacterAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "elo", "wins", "losses", "created_at")
    search_fields = ("name", "description")
    exclude = ("password_hash",)
    ordering = ("-elo",)


@admin.register(Battle)
class BattleAdmin(admin.ModelAdmin):
    list_display = ("id", "a", "b", "winner", "reason", "created_at")
    list_filter = ("reason",)
    search_fields = ("a__name", "b__name", "log")
    ordering = ("-created_at",)
