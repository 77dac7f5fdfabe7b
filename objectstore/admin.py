from django.contrib import admin

from objectstore.models import VersionedObject


@admin.register(VersionedObject)
class VersionedObjectAdmin(admin.ModelAdmin):
    """Read-only browser for version history; versions are never edited."""

    list_display = ("id", "key", "created_at_timestamp")
    search_fields = ("key",)
    ordering = ("-created_at_timestamp", "-id")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
