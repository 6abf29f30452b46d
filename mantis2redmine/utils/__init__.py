"""Utility modules for the migration."""
