from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from drivers.models import DriverProfile


class DriverProfileInline(admin.StackedInline):
    model = DriverProfile
    can_delete = False
    extra = 0
    fields = ("status", "current_latitude", "current_longitude", "last_location_update")
    readonly_fields = ("last_location_update",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Riders and drivers; driver availability is edited inline."""

    list_display = ("username", "display_name", "role", "phone_number", "is_active")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("username", "first_name", "last_name", "phone_number")
    ordering = ("username",)
    inlines = [DriverProfileInline]

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Dispatch Role", {"fields": ("role", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Dispatch Role", {"fields": ("role", "phone_number")}),
    )

    def get_inline_instances(self, request, obj=None):
        # Riders have no driver profile to show
        if obj is None or not obj.can_drive:
            return []
        return super().get_inline_instances(request, obj)
