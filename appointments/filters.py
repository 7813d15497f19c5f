from django_filters import rest_framework as filters

from .models import Appointment


class AppointmentFilter(filters.FilterSet):
    """Filter for appointment listings"""

    user = filters.UUIDFilter(field_name='user_id')
    professional = filters.NumberFilter(field_name='professional_id')
    establishment = filters.NumberFilter(field_name='establishment_id')
    status = filters.ChoiceFilter(choices=Appointment.STATUS_CHOICES)
    date = filters.DateFilter(field_name='start_at', lookup_expr='date')

    class Meta:
        model = Appointment
        fields = ['user', 'professional', 'establishment', 'status', 'date']
