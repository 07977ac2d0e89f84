"""Shared model helpers."""
from dealcast.models.base import generate_id

__all__ = ["generate_id"]
