from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "status", "current_latitude", "current_longitude", "last_location_update")
    list_filter = ("status",)
    search_fields = ("user__username", "user__phone_number")
    readonly_fields = ("last_location_update",)
    list_select_related = ("user",)
