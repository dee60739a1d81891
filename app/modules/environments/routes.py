from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.auth.schemas import UserSession
from app.modules.environments.commands import (
    CreateEnvironmentCommand, UpdateEnvironmentCommand, DeleteEnvironmentCommand,
    GetEnvironmentCommand, GetMyEnvironmentsCommand, GetApiKeysCommand,
    UpdateWidgetSettingsCommand
)
from app.modules.environments.schemas import (
    EnvironmentCreate, EnvironmentUpdate, EnvironmentResponse, WidgetSettingsUpdate,
    ApiKeyResponse, UpdateEnvironmentResponse, DeleteEnvironmentResponse
)
from app.modules.environments.usecases import (
    CreateEnvironment, UpdateEnvironment, DeleteEnvironment, GetEnvironment,
    GetMyEnvironments, GetApiKeys, RegenerateApiKeys, UpdateWidgetSettings
)
from app.core.dependencies import get_user_session, get_external_session, require_environment_id
from supabase import Client
from typing import List

router = APIRouter(prefix="/environments", tags=["environments"])


@router.get("/me", response_model=EnvironmentResponse)
async def get_current_environment(
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """Get the session's current environment"""
    return GetEnvironment(supabase).execute(GetEnvironmentCommand(
        environment_id=require_environment_id(session),
        user_id=session.user_id,
        organization_id=session.organization_id
    ))


@router.post("", response_model=EnvironmentResponse, status_code=201)
async def create_environment(
    environment_data: EnvironmentCreate,
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """Create an environment in the session's organization"""
    return CreateEnvironment(supabase).execute(CreateEnvironmentCommand(
        name=environment_data.name,
        parent_id=environment_data.parent_id,
        user_id=session.user_id,
        organization_id=session.organization_id
    ))


@router.get("", response_model=List[EnvironmentResponse])
async def get_my_environments(
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """List the organization's environments"""
    return GetMyEnvironments(supabase).execute(GetMyEnvironmentsCommand(
        user_id=session.user_id,
        organization_id=session.organization_id
    ))


@router.get("/api-keys", response_model=List[ApiKeyResponse])
async def get_organization_api_keys(
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """Get the API keys of the session's current environment"""
    return GetApiKeys(supabase).execute(GetApiKeysCommand(
        user_id=session.user_id,
        organization_id=session.organization_id,
        environment_id=require_environment_id(session)
    ))


@router.post("/api-keys/regenerate", response_model=List[ApiKeyResponse])
async def regenerate_organization_api_keys(
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """Replace the API keys of the session's current environment"""
    return RegenerateApiKeys(supabase).execute(GetApiKeysCommand(
        user_id=session.user_id,
        organization_id=session.organization_id,
        environment_id=require_environment_id(session)
    ))


@router.put("/widget/settings", response_model=EnvironmentResponse)
async def update_widget_settings(
    widget_data: WidgetSettingsUpdate,
    session: UserSession = Depends(get_external_session),
    supabase: Client = Depends(get_supabase)
):
    """Update widget settings of the session's current environment"""
    return UpdateWidgetSettings(supabase).execute(UpdateWidgetSettingsCommand(
        organization_id=session.organization_id,
        environment_id=require_environment_id(session),
        notification_center_encryption=widget_data.notification_center_encryption
    ))


@router.put("/{env_id}", response_model=UpdateEnvironmentResponse)
async def update_environment(
    env_id: str,
    environment_data: EnvironmentUpdate,
    session: UserSession = Depends(get_user_session),
    supabase: Client = Depends(get_supabase)
):
    """Update environment by id (user tokens only)"""
    return UpdateEnvironment(supabase).execute(UpdateEnvironmentCommand(
        id=env_id,
        organization_id=session.organization_id,
        user_id=session.user_id,
        name=environment_data.name,
        identifier=environment_data.identifier,
        parent_id=environment_data.parent_id
    ))


@router.delete("/{env_id}", response_model=DeleteEnvironmentResponse, status_code=200)
async def delete_environment(
    env_id: str,
    session: UserSession = Depends(get_user_session),
    supabase: Client = Depends(get_supabase)
):
    """Delete environment by id (user tokens only)"""
    return DeleteEnvironment(supabase).execute(DeleteEnvironmentCommand(
        id=env_id,
        organization_id=session.organization_id,
        user_id=session.user_id
    ))
