from django.apps import AppConfig


class AppointmentsConfig(AppConfig):  # Application configuration for timed bookings
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'appointments'
