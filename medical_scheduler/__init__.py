"""
Medical Appointment Scheduler

A FastAPI-based service for booking medical appointments: daily slot
availability, double-booking protection, status transitions and bulk
cancellation of a doctor's schedule.
"""

__version__ = "1.0.0"
