"""
schemas/user.py
---------------
Pydantic models for login and user responses.

Security note:
  - hashed_password is NEVER included in any response schema.
"""

from datetime import datetime

from pydantic import BaseModel


class UserRead(BaseModel):
    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    tenant_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserRead
