"""
Scheduling Services Module

This module provides core business logic for salon bookings:
- Business calendar model (calendar.py)
- Slot generation (slots.py)
- Availability queries and next-free-slot search (availability.py)
- Appointment status lifecycle (lifecycle.py)
- Reservation store and settings (store.py)
- Booking and status changes (booking.py)
- Conflict resolution (conflicts.py)
- Scheduled tasks (tasks.py)
"""
