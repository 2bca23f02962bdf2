"""Utility helpers for cover resolution."""
