"""
Session Model

The signed-in account, passed explicitly to whatever needs it.
Nothing in the system reads the current user from global state.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserSession(BaseModel):
    """An authenticated account for the duration of a sign-in."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the signed-in account"
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=200,
    )
    email: Optional[str] = Field(
        default=None,
        max_length=320,
    )
    signed_in_at: datetime = Field(
        default_factory=datetime.utcnow
    )
