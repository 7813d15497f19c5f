import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.settings import api_settings

from core.api import IsOperator, error_response, validation_error_response
from core.exceptions import NotFoundError, SchedulingError, UnauthorizedError

from .serializers import (
    AppointmentCreateSerializer,
    AppointmentSerializer,
    AvailableSlotsQuerySerializer,
    SlotSerializer,
)
from .services import AppointmentService

logger = logging.getLogger(__name__)

FILTER_PARAMS = ("user", "professional", "establishment", "status", "date")


class AppointmentViewSet(viewsets.ViewSet):  # View for Appointment operations
    lookup_value_regex = r"\d+"
    permission_classes = [IsAuthenticated]
    pagination_class = api_settings.DEFAULT_PAGINATION_CLASS

    def get_permissions(self):  # Staff-only writes
        if self.action in ("complete", "no_show"):
            return [IsOperator()]
        return super().get_permissions()

    def list(self, request):  # List
        filters = {key: request.query_params[key] for key in FILTER_PARAMS if key in request.query_params}
        if not request.user.is_operator:
            filters["user"] = str(request.user.pk)

        paginator = self.pagination_class()
        try:
            appointments = AppointmentService.list_appointments(filters)
            page = paginator.paginate_queryset(appointments, request, view=self)
        except NotFound:
            return error_response(NotFoundError("Invalid page", code="INVALID_PAGE"))
        except SchedulingError as e:
            return error_response(e)

        return Response({
            'success': True,
            'count': paginator.page.paginator.count,
            'next': paginator.get_next_link(),
            'previous': paginator.get_previous_link(),
            'appointments': AppointmentSerializer(page, many=True).data,
        })

    def create(self, request):  # Create
        serializer = AppointmentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        try:
            appointment = AppointmentService.create(
                establishment_id=data["establishment_id"],
                professional_id=data["professional_id"],
                service_id=data["service_id"],
                user_id=request.user.pk,
                start_at=data["start_at"],
            )
        except SchedulingError as e:
            return error_response(e)

        return Response(
            {'success': True, 'appointment': AppointmentSerializer(appointment).data},
            status=status.HTTP_201_CREATED,
        )

    def retrieve(self, request, pk=None):  # Retrieve
        try:
            appointment = AppointmentService.get_appointment(pk)
            if not request.user.is_operator and appointment.user_id != request.user.pk:
                raise UnauthorizedError("This appointment belongs to another user")
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'appointment': AppointmentSerializer(appointment).data})

    @action(detail=True, methods=["post"], url_path="check-in")
    def check_in(self, request, pk=None):  # Check in
        try:
            appointment = AppointmentService.check_in(pk, request.user.pk)
        except SchedulingError as e:
            return error_response(e)

        return Response({
            'success': True,
            'message': 'Checked in',
            'appointment': AppointmentSerializer(appointment).data,
        })

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # Cancel
        try:
            AppointmentService.cancel(pk, request.user.pk)
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'message': 'Appointment cancelled'})

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):  # Complete
        try:
            AppointmentService.mark_completed(pk)
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'message': 'Appointment completed'})

    @action(detail=True, methods=["post"], url_path="no-show")
    def no_show(self, request, pk=None):  # Mark no-show
        try:
            AppointmentService.mark_no_show(pk)
        except SchedulingError as e:
            return error_response(e)

        return Response({'success': True, 'message': 'Appointment marked as no-show'})

    @action(detail=False, methods=["get"], url_path="available-slots")
    def available_slots(self, request):  # Available slots
        serializer = AvailableSlotsQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        try:
            slots = AppointmentService.available_slots(
                data["professional_id"],
                data["service_id"],
                data["date"],
                opens_at=data.get("opens_at"),
                closes_at=data.get("closes_at"),
            )
        except SchedulingError as e:
            return error_response(e)

        return Response({
            'success': True,
            'date': data["date"],
            'slots': SlotSerializer(slots, many=True).data,
        })
