"""Core application for the Maktub backend.

This package contains models, serializers, services, views and route
registrations implementing the contract and billing API consumed by the
front-end application.
"""
