from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class IdentityModel(BaseModel):
    identity_id: UUID
    issued_at: datetime


class SignInModel(BaseModel):
    identity_id: UUID
    token: str
