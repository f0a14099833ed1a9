"""
Test suite for the Medical Appointment Scheduler.

Contains unit and integration tests for slot availability, booking rules,
status transitions and bulk cancellation.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
