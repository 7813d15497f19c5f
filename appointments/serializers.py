from rest_framework import serializers

from .models import Appointment


class AppointmentSerializer(serializers.ModelSerializer):  # Serializer for Appointment data
    service_name = serializers.CharField(source="service.name", read_only=True)
    professional_name = serializers.CharField(source="professional.name", read_only=True)
    user_id = serializers.UUIDField(read_only=True)
    duration_minutes = serializers.IntegerField(read_only=True)

    class Meta:  # Meta class implementation
        model = Appointment
        fields = [
            "id",
            "establishment_id",
            "professional_id",
            "professional_name",
            "service_id",
            "service_name",
            "user_id",
            "start_at",
            "end_at",
            "duration_minutes",
            "status",
            "checkin_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AppointmentCreateSerializer(serializers.Serializer):
    """Booking input; start_at stays a string so the engine owns parsing"""

    establishment_id = serializers.IntegerField(min_value=1)
    professional_id = serializers.IntegerField(min_value=1)
    service_id = serializers.IntegerField(min_value=1)
    start_at = serializers.CharField()


class SlotSerializer(serializers.Serializer):
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()


class AvailableSlotsQuerySerializer(serializers.Serializer):
    professional_id = serializers.IntegerField(min_value=1)
    service_id = serializers.IntegerField(min_value=1)
    date = serializers.CharField()
    opens_at = serializers.TimeField(required=False)
    closes_at = serializers.TimeField(required=False)

    def validate(self, attrs):  # Validate
        opens_at = attrs.get("opens_at")
        closes_at = attrs.get("closes_at")
        if opens_at and closes_at and opens_at >= closes_at:
            raise serializers.ValidationError("opens_at must be before closes_at")
        return attrs
