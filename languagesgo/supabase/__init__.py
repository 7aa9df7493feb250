"""Supabase data store and file store access."""

from .client import SupabaseClient, SupabaseError, build_filter_params

__all__ = [
    "SupabaseClient",
    "SupabaseError",
    "build_filter_params",
]
