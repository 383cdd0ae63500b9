from __future__ import annotations

from dataclasses import dataclass

import structlog

from microsites.services.coolify import ApplicationHandle, ApplicationSpec, DeploymentProvider
from microsites.services.descriptor import DeploymentStatus, TenantDescriptor
from microsites.services.dns import DnsProvider, fqdn
from microsites.services.environment import build_environment
from microsites.services.errors import (
    SAGA_ERRORS,
    PhaseFailed,
    PreconditionError,
    ProviderApiError,
    ProviderErrorKind,
    SagaPhase,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SagaResult:
    """Outcome of one orchestrator call.

    ``status`` is the value the caller mirrors into the tenant's deployment
    flag; ``errors`` holds every surfaced failure, the primary one first.
    """

    status: DeploymentStatus
    errors: tuple[Exception, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def error(self) -> Exception | None:
        return self.errors[0] if self.errors else None

    @property
    def is_deployed(self) -> bool:
        return self.status.is_deployed

    @property
    def partial(self) -> bool:
        return self.status is DeploymentStatus.PARTIALLY_UNDEPLOYED


class DeploymentOrchestrator:
    """Drives the DNS and deployment providers for one tenant at a time.

    Holds no per-tenant state: every call re-reads provider state, so a
    retried call converges instead of duplicating resources. Callers that need
    strict exclusivity per tenant must serialize calls themselves.
    """

    def __init__(self, dns: DnsProvider, deployments: DeploymentProvider, *, base_domain: str) -> None:
        self.dns = dns
        self.deployments = deployments
        self.base_domain = base_domain

    def deploy(self, tenant: TenantDescriptor) -> SagaResult:
        log = logger.bind(subdomain=tenant.subdomain, operation="deploy")
        if tenant.status.is_deployed:
            log.warning("deploy_rejected_already_deployed")
            return SagaResult(
                tenant.status,
                (PreconditionError("ALREADY_DEPLOYED", "Tenant is already deployed."),),
            )

        try:
            self._ensure_dns(tenant.subdomain)
        except SAGA_ERRORS as exc:
            log.error("dns_phase_failed", error=str(exc))
            return SagaResult(DeploymentStatus.NOT_DEPLOYED, (PhaseFailed(SagaPhase.DNS, exc),))

        try:
            self._converge_application(tenant)
        except SAGA_ERRORS as exc:
            log.error("deployment_phase_failed", error=str(exc))
            failure = PhaseFailed(SagaPhase.DEPLOYMENT, exc)
            self._compensate_dns(tenant.subdomain, failure)
            return SagaResult(DeploymentStatus.NOT_DEPLOYED, (failure,))

        log.info("deploy_succeeded", domain=fqdn(tenant.subdomain, self.base_domain))
        return SagaResult(DeploymentStatus.DEPLOYED)

    def update(self, tenant: TenantDescriptor) -> SagaResult:
        log = logger.bind(subdomain=tenant.subdomain, operation="update")
        try:
            handle = self.deployments.find_by_name(tenant.subdomain)
        except SAGA_ERRORS as exc:
            log.error("update_lookup_failed", error=str(exc))
            return SagaResult(tenant.status, (PhaseFailed(SagaPhase.DEPLOYMENT, exc),))

        if handle is None:
            # Nothing to update: rebuild routability before creating the application.
            log.info("update_application_missing")
            try:
                self._ensure_dns(tenant.subdomain)
            except SAGA_ERRORS as exc:
                log.error("dns_phase_failed", error=str(exc))
                return SagaResult(tenant.status, (PhaseFailed(SagaPhase.DNS, exc),))

        try:
            self._converge_application(tenant, handle=handle)
        except SAGA_ERRORS as exc:
            log.error("update_failed", error=str(exc))
            return SagaResult(tenant.status, (PhaseFailed(SagaPhase.DEPLOYMENT, exc),))

        log.info("update_succeeded")
        return SagaResult(tenant.status)

    def undeploy(self, tenant: TenantDescriptor) -> SagaResult:
        log = logger.bind(subdomain=tenant.subdomain, operation="undeploy")
        failures: list[PhaseFailed] = []
        for phase, remove in (
            (SagaPhase.DNS_REMOVAL, self._remove_dns),
            (SagaPhase.APPLICATION_REMOVAL, self._remove_application),
        ):
            try:
                remove(tenant.subdomain)
            except SAGA_ERRORS as exc:
                log.error("undeploy_phase_failed", phase=phase.value, error=str(exc))
                failures.append(PhaseFailed(phase, exc))

        if not failures:
            log.info("undeploy_succeeded")
            return SagaResult(DeploymentStatus.NOT_DEPLOYED)
        if len(failures) == 1:
            log.warning("undeploy_partial", failed_phase=failures[0].phase.value)
            return SagaResult(DeploymentStatus.PARTIALLY_UNDEPLOYED, tuple(failures))
        log.error("undeploy_failed")
        return SagaResult(tenant.status, tuple(failures))

    def is_available(self, subdomain: str) -> bool:
        return self.dns.is_available(subdomain)

    def _ensure_dns(self, subdomain: str) -> None:
        if not self.dns.is_available(subdomain):
            logger.info("dns_record_exists_continue", subdomain=subdomain)
            return
        try:
            self.dns.create(subdomain)
        except ProviderApiError as exc:
            if not exc.already_exists:
                raise
            logger.info("dns_record_exists_continue", subdomain=subdomain, provider=exc.provider)
            return
        logger.info("dns_record_created", subdomain=subdomain)

    def _converge_application(
        self,
        tenant: TenantDescriptor,
        *,
        handle: ApplicationHandle | None = None,
    ) -> ApplicationHandle:
        if handle is None:
            handle = self.deployments.find_by_name(tenant.subdomain)
        if handle is None:
            spec = ApplicationSpec(
                name=tenant.subdomain,
                domain=fqdn(tenant.subdomain, self.base_domain),
                description=tenant.display.description,
            )
            handle = self.deployments.create(spec)
        else:
            logger.info("application_reused", subdomain=tenant.subdomain, application_uuid=handle.uuid)
        self.deployments.set_environment(handle, build_environment(tenant.display))
        self.deployments.trigger_deploy(handle)
        return handle

    def _compensate_dns(self, subdomain: str, failure: PhaseFailed) -> None:
        try:
            self.dns.delete(subdomain)
        except SAGA_ERRORS as exc:
            logger.error("dns_compensation_failed", subdomain=subdomain, error=str(exc))
            failure.compensation_errors.append(exc)
            return
        logger.info("dns_compensated", subdomain=subdomain)

    def _remove_dns(self, subdomain: str) -> None:
        self.dns.delete(subdomain)

    def _remove_application(self, subdomain: str) -> None:
        handle = self.deployments.find_by_name(subdomain)
        if handle is None:
            logger.info("application_absent", subdomain=subdomain)
            return
        try:
            self.deployments.delete(handle)
        except ProviderApiError as exc:
            if exc.kind is not ProviderErrorKind.NOT_FOUND:
                raise
            logger.info("application_absent", subdomain=subdomain, application_uuid=handle.uuid)
