import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from supabase import Client

from app.config.settings import settings
from app.modules.environments.api_keys import ApiKeyManager, get_api_key_manager
from app.modules.environments.commands import (
    CreateEnvironmentCommand, UpdateEnvironmentCommand, DeleteEnvironmentCommand,
    GetEnvironmentCommand, GetMyEnvironmentsCommand, GetApiKeysCommand,
    UpdateWidgetSettingsCommand
)
from app.modules.environments.schemas import (
    EnvironmentResponse, ApiKeyResponse, UpdateEnvironmentResponse, DeleteEnvironmentResponse
)

logger = logging.getLogger(__name__)

ENVIRONMENTS_TABLE = "environments"
IDENTIFIER_BYTES = 6  # 12 hex characters


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_environment_response(row: Dict[str, Any]) -> EnvironmentResponse:
    return EnvironmentResponse(**{**row, "widget": row.get("widget") or {}})


def build_update_payload(command: UpdateEnvironmentCommand, independent_fields: bool = False) -> Dict[str, Any]:
    """
    Collect the fields of an update command that should be written.

    Legacy rule (independent_fields=False): identifier and parent_id are only
    written when name is not the empty string, whatever their own value.
    So {name: "", identifier: "x"} writes nothing while {identifier: "x"} writes
    the identifier. With independent_fields=True each field is checked on its own.
    """
    payload: Dict[str, Any] = {}
    if command.name:
        payload["name"] = command.name

    name_allows = independent_fields or command.name != ""
    if command.parent_id and name_allows:
        payload["parent_id"] = command.parent_id
    if command.identifier and name_allows:
        payload["identifier"] = command.identifier
    return payload


class EnvironmentUseCase:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _find_one(self, environment_id: str, organization_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .select("*")\
            .eq("id", environment_id)\
            .eq("organization_id", organization_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _get_or_404(self, environment_id: str, organization_id: str) -> Dict[str, Any]:
        environment = self._find_one(environment_id, organization_id)
        if not environment:
            raise HTTPException(status_code=404, detail="Environment not found")
        return environment

    def _check_parent(self, parent_id: str, organization_id: str, environment_id: Optional[str] = None):
        """A parent must be another environment of the same organization"""
        if environment_id is not None and parent_id == environment_id:
            raise HTTPException(status_code=400, detail="An environment cannot be its own parent")
        if not self._find_one(parent_id, organization_id):
            raise HTTPException(status_code=404, detail="Parent environment not found")


class CreateEnvironment(EnvironmentUseCase):
    def __init__(self, supabase: Client, key_manager: Optional[ApiKeyManager] = None):
        super().__init__(supabase)
        self.key_manager = key_manager or get_api_key_manager()

    def execute(self, command: CreateEnvironmentCommand) -> EnvironmentResponse:
        """Create an environment with a generated identifier and one API key"""
        if command.parent_id:
            self._check_parent(command.parent_id, command.organization_id)

        issued = self.key_manager.issue(command.user_id)
        result = self.supabase.table(ENVIRONMENTS_TABLE).insert({
            "name": command.name,
            "identifier": secrets.token_hex(IDENTIFIER_BYTES),
            "organization_id": command.organization_id,
            "parent_id": command.parent_id,
            "widget": {"notification_center_encryption": False},
            "api_keys": [issued["record"]],
            "created_by": command.user_id
        }).execute()

        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create environment")

        environment = result.data[0]
        logger.info(
            "Environment %s created in organization %s by user %s",
            environment["id"], command.organization_id, command.user_id
        )
        return to_environment_response(environment)


class UpdateEnvironment(EnvironmentUseCase):
    def __init__(self, supabase: Client, independent_fields: Optional[bool] = None):
        super().__init__(supabase)
        if independent_fields is None:
            independent_fields = settings.environment_update_independent_fields
        self.independent_fields = independent_fields

    def execute(self, command: UpdateEnvironmentCommand) -> UpdateEnvironmentResponse:
        """Partially update an environment of the caller's organization"""
        payload = build_update_payload(command, self.independent_fields)
        if not payload:
            self._get_or_404(command.id, command.organization_id)
            return UpdateEnvironmentResponse(acknowledged=True, matched_count=1, updated_fields=[])

        if "parent_id" in payload:
            self._check_parent(payload["parent_id"], command.organization_id, environment_id=command.id)

        updated_fields = sorted(payload)
        payload["updated_at"] = _now()

        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .update(payload)\
            .eq("id", command.id)\
            .eq("organization_id", command.organization_id)\
            .execute()

        if not result.data:
            raise HTTPException(status_code=404, detail="Environment not found")

        logger.info("Environment %s updated by user %s: %s", command.id, command.user_id, updated_fields)
        return UpdateEnvironmentResponse(
            acknowledged=True,
            matched_count=len(result.data),
            updated_fields=updated_fields
        )


class DeleteEnvironment(EnvironmentUseCase):
    def execute(self, command: DeleteEnvironmentCommand) -> DeleteEnvironmentResponse:
        self._get_or_404(command.id, command.organization_id)

        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .delete()\
            .eq("id", command.id)\
            .eq("organization_id", command.organization_id)\
            .execute()

        logger.info("Environment %s deleted by user %s", command.id, command.user_id)
        return DeleteEnvironmentResponse(acknowledged=True, deleted_count=len(result.data or []))


class GetEnvironment(EnvironmentUseCase):
    def execute(self, command: GetEnvironmentCommand) -> EnvironmentResponse:
        return to_environment_response(self._get_or_404(command.environment_id, command.organization_id))


class GetMyEnvironments(EnvironmentUseCase):
    def execute(self, command: GetMyEnvironmentsCommand) -> List[EnvironmentResponse]:
        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .select("*")\
            .eq("organization_id", command.organization_id)\
            .order("created_at")\
            .execute()
        return [to_environment_response(env) for env in result.data or []]


class GetApiKeys(EnvironmentUseCase):
    def __init__(self, supabase: Client, key_manager: Optional[ApiKeyManager] = None):
        super().__init__(supabase)
        self.key_manager = key_manager or get_api_key_manager()

    def execute(self, command: GetApiKeysCommand) -> List[ApiKeyResponse]:
        environment = self._get_or_404(command.environment_id, command.organization_id)
        return [
            ApiKeyResponse(key=self.key_manager.decrypt(api_key["key"]), user_id=api_key["user_id"])
            for api_key in environment.get("api_keys") or []
        ]


class RegenerateApiKeys(EnvironmentUseCase):
    def __init__(self, supabase: Client, key_manager: Optional[ApiKeyManager] = None):
        super().__init__(supabase)
        self.key_manager = key_manager or get_api_key_manager()

    def execute(self, command: GetApiKeysCommand) -> List[ApiKeyResponse]:
        """Replace the environment's key set with a single fresh key in one row update"""
        self._get_or_404(command.environment_id, command.organization_id)
        issued = self.key_manager.issue(command.user_id)

        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .update({"api_keys": [issued["record"]], "updated_at": _now()})\
            .eq("id", command.environment_id)\
            .eq("organization_id", command.organization_id)\
            .execute()

        if not result.data:
            raise HTTPException(status_code=404, detail="Environment not found")

        logger.info("API keys regenerated for environment %s by user %s", command.environment_id, command.user_id)
        return [ApiKeyResponse(key=issued["plaintext"], user_id=command.user_id)]


class UpdateWidgetSettings(EnvironmentUseCase):
    def execute(self, command: UpdateWidgetSettingsCommand) -> EnvironmentResponse:
        environment = self._get_or_404(command.environment_id, command.organization_id)
        widget = {
            **(environment.get("widget") or {}),
            "notification_center_encryption": command.notification_center_encryption
        }

        result = self.supabase.table(ENVIRONMENTS_TABLE)\
            .update({"widget": widget, "updated_at": _now()})\
            .eq("id", command.environment_id)\
            .eq("organization_id", command.organization_id)\
            .execute()

        if not result.data:
            raise HTTPException(status_code=404, detail="Environment not found")

        return to_environment_response(result.data[0])
