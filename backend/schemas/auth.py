"""
Authentication schemas for decoded JWT bearer tokens.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Claims the API relies on from a verified access token."""

    user_id: UUID
    email: Optional[str] = None
    exp: Optional[datetime] = None
