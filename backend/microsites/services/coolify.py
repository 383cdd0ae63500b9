from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Protocol, Sequence, runtime_checkable

import httpx
import structlog

from microsites.services.environment import EnvironmentVariable
from microsites.services.errors import PreconditionError, ProviderApiError, ProviderErrorKind
from microsites.services.provider_http import ProviderHttp

logger = structlog.get_logger(__name__)

PROVIDER = "coolify"


@dataclass(frozen=True)
class ApplicationHandle:
    uuid: str
    name: str


@dataclass(frozen=True)
class ApplicationSpec:
    name: str
    domain: str
    description: str = ""


@runtime_checkable
class DeploymentProvider(Protocol):
    def find_by_name(self, name: str) -> ApplicationHandle | None: ...

    def create(self, spec: ApplicationSpec) -> ApplicationHandle: ...

    def set_environment(self, handle: ApplicationHandle, variables: Sequence[EnvironmentVariable]) -> None: ...

    def trigger_deploy(self, handle: ApplicationHandle) -> None: ...

    def delete(self, handle: ApplicationHandle) -> None: ...


@dataclass(frozen=True)
class AppTemplate:
    """Static, tenant independent options for every created application."""

    git_repository: str | None
    project_uuid: str | None
    server_uuid: str | None
    environment_uuid: str | None
    environment_name: str = "production"
    git_branch: str = "master"
    build_pack: str = "dockercompose"
    docker_compose_location: str = "docker-compose.yml"
    port: int = 3000
    health_check_path: str = "/api/health"
    health_check_scheme: str = "http"
    health_check_interval: int = 10
    health_check_timeout: int = 3
    health_check_retries: int = 3
    health_check_start_period: int = 30

    def missing(self) -> list[str]:
        return [item.name for item in fields(self) if getattr(self, item.name) in (None, "")]

    def validate(self) -> None:
        missing = self.missing()
        if missing:
            raise PreconditionError(
                "MISSING_STATIC_CONFIG",
                f"Missing application configuration: {', '.join(missing)}.",
            )

    def create_payload(self, spec: ApplicationSpec) -> dict[str, Any]:
        public_url = f"https://{spec.domain}"
        return {
            "project_uuid": self.project_uuid,
            "server_uuid": self.server_uuid,
            "environment_uuid": self.environment_uuid,
            "environment_name": self.environment_name,
            "git_repository": self.git_repository,
            "git_branch": self.git_branch,
            "build_pack": self.build_pack,
            "name": spec.name,
            "description": spec.description or "",
            "domains": public_url,
            "docker_compose_domains": [{"name": "web", "domain": public_url}],
            "base_directory": "/",
            "ports_exposes": self.port,
            "docker_compose_location": self.docker_compose_location,
            "health_check_enabled": True,
            "health_check_path": self.health_check_path,
            "health_check_port": str(self.port),
            "health_check_scheme": self.health_check_scheme,
            "health_check_interval": self.health_check_interval,
            "health_check_timeout": self.health_check_timeout,
            "health_check_retries": self.health_check_retries,
            "health_check_start_period": self.health_check_start_period,
            "instant_deploy": False,
        }


class CoolifyDeployments:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        template: AppTemplate,
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.template = template
        self._http = ProviderHttp(
            PROVIDER,
            f"{base_url.rstrip('/')}/api/v1",
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout_s=timeout_s,
            http_client=http_client,
        )

    def list_applications(self) -> list[dict]:
        payload = self._http.send_json("GET", "/applications", endpoint="GET applications")
        if not isinstance(payload, list):
            logger.error("coolify_listing_invalid", payload_type=type(payload).__name__)
            raise ProviderApiError(
                "Coolify returned an unexpected application listing.",
                kind=ProviderErrorKind.TRANSPORT_ERROR,
                provider=PROVIDER,
            )
        return payload

    def find_by_name(self, name: str) -> ApplicationHandle | None:
        for application in self.list_applications():
            if not isinstance(application, dict):
                continue
            if application.get("name") == name and application.get("uuid"):
                return ApplicationHandle(uuid=application["uuid"], name=name)
        return None

    def create(self, spec: ApplicationSpec) -> ApplicationHandle:
        self.template.validate()
        payload = self._http.send_json(
            "POST",
            "/applications/public",
            endpoint="POST applications",
            json=self.template.create_payload(spec),
        )
        application_uuid = payload.get("uuid") if isinstance(payload, dict) else None
        if not application_uuid:
            logger.error("coolify_create_missing_uuid", name=spec.name)
            raise ProviderApiError(
                "Application created but no ID returned.",
                kind=ProviderErrorKind.PROVIDER_ERROR,
                provider=PROVIDER,
                detail=payload,
            )
        logger.info("coolify_application_created", name=spec.name, application_uuid=application_uuid)
        return ApplicationHandle(uuid=application_uuid, name=spec.name)

    def set_environment(self, handle: ApplicationHandle, variables: Sequence[EnvironmentVariable]) -> None:
        self._http.send(
            "PATCH",
            f"/applications/{handle.uuid}/envs/bulk",
            endpoint="PATCH envs",
            json={"data": [variable.to_payload() for variable in variables]},
        )
        logger.info(
            "coolify_environment_set",
            application_uuid=handle.uuid,
            keys=[variable.key for variable in variables],
        )

    def trigger_deploy(self, handle: ApplicationHandle) -> None:
        self._http.send("GET", "/deploy", endpoint="GET deploy", params={"uuid": handle.uuid})
        logger.info("coolify_deploy_triggered", application_uuid=handle.uuid)

    def delete(self, handle: ApplicationHandle) -> None:
        self._http.send("DELETE", f"/applications/{handle.uuid}", endpoint="DELETE application")
        logger.info("coolify_application_deleted", application_uuid=handle.uuid)
