from __future__ import annotations

import structlog

from microsites.services.cloudflare import CloudflareDns
from microsites.services.coolify import AppTemplate, CoolifyDeployments
from microsites.services.dns import DnsProvider
from microsites.services.errors import PreconditionError
from microsites.services.godaddy import GoDaddyDns
from microsites.services.orchestrator import DeploymentOrchestrator
from microsites.settings import Settings

logger = structlog.get_logger(__name__)


def _require(config: Settings, *names: str) -> None:
    missing = [name for name in names if not getattr(config, name)]
    if missing:
        raise PreconditionError(
            "PROVIDER_NOT_CONFIGURED",
            f"Missing provider configuration: {', '.join(missing)}.",
        )


def build_dns_provider(config: Settings) -> DnsProvider:
    provider = config.DNS_PROVIDER.strip().lower()
    if provider == "cloudflare":
        _require(config, "CLOUDFLARE_API_TOKEN", "CLOUDFLARE_ZONE_ID", "DOMAIN")
        return CloudflareDns(
            config.CLOUDFLARE_API_TOKEN,
            config.CLOUDFLARE_ZONE_ID,
            config.DOMAIN,
            config.SERVER_IP,
            base_url=config.CLOUDFLARE_API_URL,
            proxied=config.CLOUDFLARE_PROXIED,
            timeout_s=config.PROVIDER_TIMEOUT_SECONDS,
        )
    if provider == "godaddy":
        _require(config, "GODADDY_API_KEY", "GODADDY_API_SECRET", "DOMAIN")
        return GoDaddyDns(
            config.GODADDY_API_KEY,
            config.GODADDY_API_SECRET,
            config.DOMAIN,
            config.SERVER_IP,
            base_url=config.GODADDY_API_URL,
            ttl=config.GODADDY_RECORD_TTL,
            timeout_s=config.PROVIDER_TIMEOUT_SECONDS,
        )
    raise PreconditionError("PROVIDER_NOT_CONFIGURED", f"Unknown DNS provider {provider!r}.")


def build_app_template(config: Settings) -> AppTemplate:
    return AppTemplate(
        git_repository=config.TEMPLATE_REPO,
        project_uuid=config.COOLIFY_PROJECT_ID,
        server_uuid=config.COOLIFY_SERVER_ID,
        environment_uuid=config.COOLIFY_ENVIRONMENT_ID,
        environment_name=config.COOLIFY_ENVIRONMENT_NAME,
        git_branch=config.TEMPLATE_BRANCH,
        build_pack=config.TEMPLATE_BUILD_PACK,
        docker_compose_location=config.TEMPLATE_COMPOSE_LOCATION,
        port=config.TEMPLATE_PORT,
        health_check_path=config.HEALTH_CHECK_PATH,
        health_check_scheme=config.HEALTH_CHECK_SCHEME,
        health_check_interval=config.HEALTH_CHECK_INTERVAL,
        health_check_timeout=config.HEALTH_CHECK_TIMEOUT,
        health_check_retries=config.HEALTH_CHECK_RETRIES,
        health_check_start_period=config.HEALTH_CHECK_START_PERIOD,
    )


def build_deployment_provider(config: Settings) -> CoolifyDeployments:
    _require(config, "COOLIFY_API_URL", "COOLIFY_API_KEY")
    template = build_app_template(config)
    missing = template.missing()
    if missing:
        # Only fatal once an application has to be created.
        logger.warning("app_template_incomplete", missing=missing)
    return CoolifyDeployments(
        config.COOLIFY_API_URL,
        config.COOLIFY_API_KEY,
        template,
        timeout_s=config.PROVIDER_TIMEOUT_SECONDS,
    )


def build_orchestrator(config: Settings) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        build_dns_provider(config),
        build_deployment_provider(config),
        base_domain=config.DOMAIN,
    )
