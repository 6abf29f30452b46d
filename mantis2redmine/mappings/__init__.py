"""Mapping resolution, persistence and foreign key tracking."""
