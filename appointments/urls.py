from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'appointments'

router = SimpleRouter()
router.register(r'appointments', views.AppointmentViewSet, basename='appointment')

urlpatterns = [
    path('', include(router.urls)),
]
