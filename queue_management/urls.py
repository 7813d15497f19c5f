"""
Queue Management URLs
Queue creation, joining, calling and display boards
"""
from django.urls import path
from queue_management import views

app_name = 'queue_management'

urlpatterns = [
    # List/create and get/patch share a route; each verb keeps its own name
    path('', views.QueueListCreateView.as_view(), name='queue_list'),
    path('', views.QueueListCreateView.as_view(), name='queue_create'),
    path('<int:queue_id>/', views.QueueDetailView.as_view(), name='queue_get'),
    path('<int:queue_id>/', views.QueueDetailView.as_view(), name='queue_detail'),

    # Client actions
    path('<int:queue_id>/join/', views.JoinQueueView.as_view(), name='queue_join'),
    path('<int:queue_id>/status/', views.queue_status, name='queue_status'),
    path('entries/<int:entry_id>/leave/', views.leave_queue, name='entry_leave'),

    # Staff actions
    path('<int:queue_id>/call-next/', views.call_next, name='queue_call_next'),
    path('entries/<int:entry_id>/served/', views.mark_entry_served, name='entry_served'),
    path('entries/<int:entry_id>/no-show/', views.mark_entry_no_show, name='entry_no_show'),

    # Display screens
    path('<int:queue_id>/board/', views.queue_board, name='queue_board'),
]
