"""
Immutable parameter bundles, one per environment operation.
Built by the routes from the session and request payload, consumed by usecases.py.
"""

from pydantic import BaseModel, Field
from typing import Optional


class EnvironmentCommand(BaseModel):
    organization_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)

    class Config:
        frozen = True


class CreateEnvironmentCommand(EnvironmentCommand):
    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class UpdateEnvironmentCommand(EnvironmentCommand):
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    identifier: Optional[str] = None
    parent_id: Optional[str] = None


class DeleteEnvironmentCommand(EnvironmentCommand):
    id: str = Field(..., min_length=1)


class GetEnvironmentCommand(EnvironmentCommand):
    environment_id: str = Field(..., min_length=1)


class GetMyEnvironmentsCommand(EnvironmentCommand):
    pass


class GetApiKeysCommand(EnvironmentCommand):
    """Shared by the get and regenerate API key operations."""
    environment_id: str = Field(..., min_length=1)


class UpdateWidgetSettingsCommand(BaseModel):
    organization_id: str = Field(..., min_length=1)
    environment_id: str = Field(..., min_length=1)
    notification_center_encryption: bool

    class Config:
        frozen = True
