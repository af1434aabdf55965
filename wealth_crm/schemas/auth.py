"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from wealth_crm.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency and carries
    everything route guards need for authorization.
    """
    user_id: UUID
    role: Role
    email: str
    display_name: str
