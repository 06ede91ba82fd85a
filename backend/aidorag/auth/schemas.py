"""Authentication schemas for Supabase integration."""

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated user from Supabase auth.users."""

    id: str = Field(..., description="User UUID from Supabase")
    email: str | None = Field(default=None, description="User email address")
