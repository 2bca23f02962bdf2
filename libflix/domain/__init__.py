"""
Domain layer - Core cover resolution models.

This module contains the catalog and resolution models used across the
resolver, isolated from Flask and network concerns.
"""
