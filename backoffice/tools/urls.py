from django.urls import path
from .views import (
    tool_list_create, tool_detail, tool_history,
    tool_assign, tool_recall, tool_check_out, tool_return,
    tool_start_maintenance, tool_complete_maintenance, my_tools,
    booking_list_create, booking_detail, booking_approve, booking_reject,
    wish_list_create, wish_detail, wish_set_status,
)

urlpatterns = [
    # Tool endpoints
    path('tools/', tool_list_create, name='tool-list-create'),
    path('tools/<int:pk>/', tool_detail, name='tool-detail'),
    path('tools/<int:pk>/history/', tool_history, name='tool-history'),

    # Lifecycle actions
    path('tools/<int:pk>/assign/', tool_assign, name='tool-assign'),
    path('tools/<int:pk>/recall/', tool_recall, name='tool-recall'),
    path('tools/<int:pk>/check-out/', tool_check_out, name='tool-check-out'),
    path('tools/<int:pk>/return/', tool_return, name='tool-return'),
    path('tools/<int:pk>/maintenance/start/', tool_start_maintenance, name='tool-maintenance-start'),
    path('tools/<int:pk>/maintenance/complete/', tool_complete_maintenance, name='tool-maintenance-complete'),
    path('my-tools/', my_tools, name='my-tools'),

    # Booking endpoints
    path('tool-bookings/', booking_list_create, name='tool-booking-list-create'),
    path('tool-bookings/<int:pk>/', booking_detail, name='tool-booking-detail'),
    path('tool-bookings/<int:pk>/approve/', booking_approve, name='tool-booking-approve'),
    path('tool-bookings/<int:pk>/reject/', booking_reject, name='tool-booking-reject'),

    # Wishlist endpoints
    path('tool-wishlist/', wish_list_create, name='tool-wish-list-create'),
    path('tool-wishlist/<int:pk>/', wish_detail, name='tool-wish-detail'),
    path('tool-wishlist/<int:pk>/status/', wish_set_status, name='tool-wish-set-status'),
]
