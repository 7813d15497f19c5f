from django.contrib import admin
from .models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):  # Admin configuration for Appointment model
    list_display = ('id', 'user', 'professional', 'service', 'start_at', 'end_at', 'status', 'checkin_at')
    list_filter = ('status', 'establishment')
    search_fields = ('user__email', 'professional__name')
    date_hierarchy = 'start_at'
    ordering = ('-start_at',)
    readonly_fields = ('status', 'checkin_at', 'end_at', 'created_at', 'updated_at')

    def has_delete_permission(self, request, obj=None):  # Appointments are never deleted
        return False
