"""Supabase-backed repositories returning ``Ok``/``Err`` results."""

from .base import Err, Ok, Result
from .cache import SupabaseSearchCache
from .city import CityRepository
from .episode import EpisodeRepository
from .restaurant import RestaurantRepository

__all__ = [
    "Err",
    "Ok",
    "Result",
    "SupabaseSearchCache",
    "CityRepository",
    "EpisodeRepository",
    "RestaurantRepository",
]
