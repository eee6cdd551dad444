"""
User account and profile models
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class AuthUser(BaseModel):
    """Account as returned by the identity provider"""
    uid: str
    email: str
    display_name: Optional[str] = None


class UserProfile(BaseModel):
    """users/{uid} document"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str
    display_name: str
    role: str
    phone: str = ""
    created_at: str
    status: str = "active"
