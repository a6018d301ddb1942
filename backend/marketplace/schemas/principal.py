"""
marketplace/schemas/principal.py
Authenticated caller as seen by the checkout core.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field

Role = Literal["guest", "user", "admin"]


class Principal(BaseModel):
    uid: str = Field(..., description="Firebase UID (buyer / seller identity)")
    role: Role = Field("user", description="guest | user | admin")
    email: Optional[str] = Field(None, description="E-mail, if the token carries one")
    display_name: Optional[str] = Field(None, description="Display name, if present")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
