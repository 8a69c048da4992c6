"""Shared helpers for the overlay CLI."""
