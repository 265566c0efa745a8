"""
Package Desk - Residential Package Tracking Backend

This package contains the staff-facing package desk: checking packages into
storage for residents, checking them back out, and maintaining the resident
directory on top of a Supabase record store with live change notifications.

Modules:
    config: Pydantic settings for Supabase, API, logging and desk defaults
    schemas: Pydantic models for database rows, change events and forms
    utils: Record store contract and the Supabase adapter
    repositories: Per-table repositories with the store error taxonomy
    services: View cache, change listener, filters and mutation coordinator
    views: Check-in, check-out and residents surfaces producing notifications
"""

__version__ = "0.1.0"
__author__ = "Package Desk Team"
