"""Shared helpers for the forum migrator application."""
