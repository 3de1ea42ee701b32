"""Appointment booking core for a wedding gown lending service."""
