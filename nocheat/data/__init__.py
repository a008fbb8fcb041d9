"""Payload validation and JSON loading for player statistics."""
