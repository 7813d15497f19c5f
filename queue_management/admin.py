from django.contrib import admin
from .models import Queue, QueueEntry


class QueueEntryInline(admin.TabularInline):
    model = QueueEntry
    extra = 0
    can_delete = False
    readonly_fields = ("position", "status", "priority", "user", "created_at", "called_at", "served_at")


@admin.register(Queue)
class QueueAdmin(admin.ModelAdmin):
    list_display = ("name", "establishment", "service", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("name", "establishment__name")
    readonly_fields = ("status",)
    inlines = [QueueEntryInline]


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ("queue", "position", "status", "priority", "user", "created_at", "called_at")
    list_filter = ("status",)
    search_fields = ("queue__name", "user__email")
    readonly_fields = ("position", "status", "called_at", "served_at")

    def has_delete_permission(self, request, obj=None):  # Entries are never deleted
        return False
