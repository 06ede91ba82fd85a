"""Supabase authentication module.

Provides JWT-based authentication using Supabase.
"""

from aidorag.auth.dependencies import CurrentUser, get_current_user
from aidorag.auth.schemas import User
from aidorag.auth.supabase_client import SupabaseAuthClient, SupabaseAuthError

__all__ = [
    "CurrentUser",
    "SupabaseAuthClient",
    "SupabaseAuthError",
    "get_current_user",
    "User",
]
