"""Shared helpers for the Sopen service."""
