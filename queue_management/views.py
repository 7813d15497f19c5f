"""
Queue Management API Views
Joining, calling and displaying walk-in queues
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from appointments.serializers import AppointmentSerializer
from core.api import IsOperator, error_response, validation_error_response
from core.exceptions import SchedulingError, UnauthorizedError
from queue_management.serializers import (
    CallNextSerializer,
    JoinQueueSerializer,
    QueueCreateSerializer,
    QueueEntrySerializer,
    QueueListQuerySerializer,
    QueueSerializer,
    QueueStatusSerializer,
    QueueStatusUpdateSerializer,
)
from queue_management.services import CallResult, QueueService

logger = logging.getLogger(__name__)


class QueueListCreateView(APIView):
    """List queues with their waiting counts; staff create new ones"""
    permission_classes = [IsAuthenticated]

    def get_permissions(self):  # Staff-only create
        if self.request.method == "POST":
            return [IsOperator()]
        return super().get_permissions()

    def get(self, request):  # Get
        serializer = QueueListQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        try:
            queues = QueueService.list_queues(
                establishment_id=data.get("establishment_id"),
                status=data.get("status"),
            )
        except SchedulingError as e:
            return error_response(e)

        return Response({
            'success': True,
            'queues': QueueSerializer(queues, many=True).data,
            'total': len(queues),
        })

    def post(self, request):  # Post
        serializer = QueueCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        try:
            queue = QueueService.create_queue(
                establishment_id=data["establishment_id"],
                name=data["name"],
                service_id=data.get("service_id"),
                status=data["status"],
            )
        except SchedulingError as e:
            return error_response(e)

        return Response(
            {'success': True, 'queue': QueueSerializer(queue).data},
            status=status.HTTP_201_CREATED,
        )


class QueueDetailView(APIView):
    """Fetch a queue; staff open or close it"""
    permission_classes = [IsAuthenticated]

    def get_permissions(self):  # Staff-only status changes
        if self.request.method == "PATCH":
            return [IsOperator()]
        return super().get_permissions()

    def get(self, request, queue_id):  # Get
        try:
            queue = QueueService.get_queue(queue_id)
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'queue': QueueSerializer(queue).data})

    def patch(self, request, queue_id):  # Patch
        serializer = QueueStatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            queue = QueueService.set_status(queue_id, serializer.validated_data["status"])
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'queue': QueueSerializer(queue).data})


class JoinQueueView(APIView):
    """Take a ticket in a queue"""
    permission_classes = [IsAuthenticated]

    def post(self, request, queue_id):  # Post
        serializer = JoinQueueSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        priority = serializer.validated_data["priority"]
        try:
            if priority > 0 and not request.user.is_operator:
                raise UnauthorizedError("Only staff can assign a queue priority")
            entry = QueueService.join(queue_id, user_id=request.user.pk, priority=priority)
        except SchedulingError as e:
            return error_response(e)

        return Response(
            {
                'success': True,
                'message': f'Joined queue at position {entry.position}',
                'entry': QueueEntrySerializer(entry).data,
            },
            status=status.HTTP_201_CREATED,
        )


@api_view(['POST'])
@permission_classes([IsOperator])
def call_next(request, queue_id):
    """Staff call the next checked-in appointment or waiting entry"""
    serializer = CallNextSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    try:
        result = QueueService.call_next(
            queue_id,
            establishment_id=data.get("establishment_id"),
            professional_id=data.get("professional_id"),
        )
    except SchedulingError as e:
        return error_response(e)

    if result is None:
        return Response({'success': True, 'kind': None, 'message': 'Nobody is waiting in this queue'})

    if result.kind == CallResult.APPOINTMENT:
        return Response({
            'success': True,
            'kind': result.kind,
            'appointment': AppointmentSerializer(result.record).data,
        })

    return Response({
        'success': True,
        'kind': result.kind,
        'entry': QueueEntrySerializer(result.record).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_status(request, queue_id):
    """Waiting count and the caller's own position"""
    try:
        result = QueueService.status(queue_id, user_id=request.user.pk)
    except SchedulingError as e:
        return error_response(e)

    return Response({'success': True, **QueueStatusSerializer(result).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_board(request, queue_id):
    """Display screen data: waiting line, people being served and today's stats"""
    try:
        board = QueueService.board(queue_id)
    except SchedulingError as e:
        return error_response(e)

    return Response({
        'success': True,
        'queue': QueueSerializer(board["queue"]).data,
        'waiting': QueueEntrySerializer(board["waiting"], many=True).data,
        'called': QueueEntrySerializer(board["called"], many=True).data,
        'stats': board["stats"],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def leave_queue(request, entry_id):
    try:
        QueueService.leave(entry_id, user_id=request.user.pk)
    except SchedulingError as e:
        return error_response(e)

    return Response({'success': True, 'message': 'You have left the queue'})


@api_view(['POST'])
@permission_classes([IsOperator])
def mark_entry_served(request, entry_id):
    try:
        entry = QueueService.mark_served(entry_id)
    except SchedulingError as e:
        return error_response(e)

    return Response({'success': True, 'entry': QueueEntrySerializer(entry).data})


@api_view(['POST'])
@permission_classes([IsOperator])
def mark_entry_no_show(request, entry_id):
    try:
        entry = QueueService.mark_entry_no_show(entry_id)
    except SchedulingError as e:
        return error_response(e)

    return Response({'success': True, 'entry': QueueEntrySerializer(entry).data})
