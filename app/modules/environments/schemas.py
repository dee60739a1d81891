from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class EnvironmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class EnvironmentUpdate(BaseModel):
    name: Optional[str] = None
    identifier: Optional[str] = None
    parent_id: Optional[str] = None


class WidgetSettings(BaseModel):
    notification_center_encryption: bool = False


class WidgetSettingsUpdate(BaseModel):
    notification_center_encryption: bool


class EnvironmentResponse(BaseModel):
    id: str
    name: str
    identifier: str
    organization_id: str
    parent_id: Optional[str] = None
    widget: WidgetSettings = WidgetSettings()
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApiKeyResponse(BaseModel):
    key: str
    user_id: str


class UpdateEnvironmentResponse(BaseModel):
    acknowledged: bool
    matched_count: int
    updated_fields: List[str] = Field(default_factory=list)


class DeleteEnvironmentResponse(BaseModel):
    acknowledged: bool
    deleted_count: int
