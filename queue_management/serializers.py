from rest_framework import serializers

from .models import Queue, QueueEntry


class QueueSerializer(serializers.ModelSerializer):  # Serializer for Queue data
    establishment_id = serializers.IntegerField(read_only=True)
    service_id = serializers.IntegerField(read_only=True, allow_null=True)
    waiting_count = serializers.SerializerMethodField()

    class Meta:  # Meta class implementation
        model = Queue
        fields = [
            "id",
            "establishment_id",
            "service_id",
            "name",
            "status",
            "waiting_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_waiting_count(self, obj):  # Only set on listed or fetched queues
        return getattr(obj, "waiting_count", None)


class QueueCreateSerializer(serializers.Serializer):
    establishment_id = serializers.IntegerField(min_value=1)
    service_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    name = serializers.CharField(max_length=255)
    status = serializers.ChoiceField(choices=Queue.STATUS_CHOICES, default="open")


class QueueListQuerySerializer(serializers.Serializer):
    establishment_id = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=Queue.STATUS_CHOICES, required=False)


class QueueStatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()


class QueueEntrySerializer(serializers.ModelSerializer):  # Serializer for QueueEntry data
    queue_id = serializers.IntegerField(read_only=True)
    user_id = serializers.UUIDField(read_only=True, allow_null=True)
    estimated_wait_minutes = serializers.SerializerMethodField()

    class Meta:  # Meta class implementation
        model = QueueEntry
        fields = [
            "id",
            "queue_id",
            "user_id",
            "position",
            "status",
            "priority",
            "created_at",
            "called_at",
            "served_at",
            "estimated_wait_minutes",
        ]
        read_only_fields = fields

    def get_estimated_wait_minutes(self, obj):  # Only set on freshly joined or board entries
        return getattr(obj, "estimated_wait_minutes", None)


class JoinQueueSerializer(serializers.Serializer):
    priority = serializers.IntegerField(min_value=0, default=0)


class CallNextSerializer(serializers.Serializer):
    establishment_id = serializers.IntegerField(min_value=1, required=False)
    professional_id = serializers.IntegerField(min_value=1, required=False)


class QueueStatusSerializer(serializers.Serializer):
    queue_id = serializers.IntegerField()
    total_waiting = serializers.IntegerField()
    user_position = serializers.IntegerField(allow_null=True)
    estimated_wait_minutes = serializers.IntegerField(allow_null=True)
