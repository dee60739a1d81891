from pydantic import BaseModel
from typing import Optional


class UserSession(BaseModel):
    """Identity of the caller, passed explicitly into every environment operation."""
    user_id: str
    organization_id: str
    environment_id: Optional[str] = None
    email: Optional[str] = None
    via_api_key: bool = False

    class Config:
        frozen = True
