"""Clinic operations application.

Models, services, serializers and route registrations for patient
intake, scheduling, surgical cases, clinical forms and billing.
"""
