from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import Participant, Establishment, Service, Professional


@admin.register(Participant)
class ParticipantAdmin(BaseUserAdmin):
    list_display = ("email", "full_name", "role", "is_active", "date_joined")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("email", "full_name")
    ordering = ("-date_joined",)

    fieldsets = (
        ("Authentication", {"fields": ("email", "password")}),
        ("Personal Info", {"fields": ("full_name",)}),
        ("Role & Status", {"fields": ("role", "is_active")}),
        ("Admin Info", {"fields": ("is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Timestamps", {"fields": ("date_joined", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2", "role", "full_name"),
            },
        ),
    )


class ServiceInline(admin.TabularInline):
    model = Service
    extra = 0


class ProfessionalInline(admin.TabularInline):
    model = Professional
    extra = 0


@admin.register(Establishment)
class EstablishmentAdmin(admin.ModelAdmin):
    list_display = ("name", "address", "is_active", "created_at")
    search_fields = ("name", "address")
    list_filter = ("is_active",)
    inlines = [ServiceInline, ProfessionalInline]


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "establishment", "duration_minutes", "is_active")
    search_fields = ("name", "establishment__name")
    list_filter = ("is_active",)


@admin.register(Professional)
class ProfessionalAdmin(admin.ModelAdmin):
    list_display = ("name", "establishment", "participant", "is_active")
    search_fields = ("name", "participant__email")
    list_filter = ("is_active",)
