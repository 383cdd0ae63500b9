from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from microsites.db import get_db
from microsites.deps import get_orchestrator, require_orchestrator
from microsites.models import Tenant
from microsites.redis import get_redis_client
from microsites.schemas.tenant import (
    LinkSchema,
    TenantCreateRequest,
    TenantResponse,
    TenantUpdateRequest,
    flavor_content_error,
)
from microsites.services.descriptor import (
    Customization,
    DeploymentStatus,
    DisplayData,
    Link,
    TenantDescriptor,
)
from microsites.services.dns import fqdn
from microsites.services.errors import PhaseFailed, PreconditionError, ProviderApiError
from microsites.services.locks import tenant_lock
from microsites.services.orchestrator import DeploymentOrchestrator, SagaResult
from microsites.settings import settings

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
def list_tenants(db: Session = Depends(get_db)) -> dict:
    tenants = db.execute(select(Tenant).order_by(Tenant.created_at.desc())).scalars().all()
    return {
        "ok": True,
        "data": {"tenants": [_tenant_response(tenant).model_dump(mode="json") for tenant in tenants]},
    }


@router.get("/stats")
def tenant_stats(db: Session = Depends(get_db)) -> dict:
    total = db.execute(select(func.count(Tenant.id))).scalar_one()
    deployed = db.execute(select(func.count(Tenant.id)).where(Tenant.is_deployed.is_(True))).scalar_one()
    # links is a JSON column
    link_lists = db.execute(select(Tenant.links)).scalars().all()
    total_links = sum(len(links or []) for links in link_lists)
    return {
        "ok": True,
        "data": {
            "total_tenants": total,
            "deployed_tenants": deployed,
            "total_links": total_links,
            "deployment_rate": (deployed / total) * 100 if total else 0,
        },
    }


@router.post("")
def create_tenant(
    payload: TenantCreateRequest,
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator | None = Depends(get_orchestrator),
) -> dict:
    existing = db.execute(select(Tenant.id).where(Tenant.subdomain == payload.subdomain)).scalar_one_or_none()
    if existing:
        raise _subdomain_taken()
    if orchestrator is not None:
        try:
            available = orchestrator.is_available(payload.subdomain)
        except ProviderApiError as exc:
            raise HTTPException(
                status_code=502,
                detail={"ok": False, "error": _error_detail(exc)},
            ) from exc
        if not available:
            logger.info("create_rejected_dns_taken", subdomain=payload.subdomain)
            raise _subdomain_taken()

    tenant = Tenant(
        id=uuid.uuid4(),
        subdomain=payload.subdomain,
        name=payload.name,
        description=payload.description,
        links=[link.model_dump() for link in payload.links],
        customization=payload.customization.model_dump(by_alias=True, exclude_none=True),
        logo_url=payload.logo_url or None,
        deployment_flavor=payload.deployment_flavor,
        raw_html=payload.raw_html,
        is_deployed=False,
    )
    db.add(tenant)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _subdomain_taken() from exc
    db.refresh(tenant)
    return {"ok": True, "data": {"tenant": _tenant_response(tenant).model_dump(mode="json")}}


@router.get("/availability/{subdomain}")
def check_availability(
    subdomain: str,
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator = Depends(require_orchestrator),
) -> dict:
    normalized = subdomain.strip().lower()
    taken = db.execute(select(Tenant.id).where(Tenant.subdomain == normalized)).scalar_one_or_none()
    if taken:
        return {"ok": True, "data": {"subdomain": normalized, "available": False}}
    try:
        available = orchestrator.is_available(normalized)
    except ProviderApiError as exc:
        raise HTTPException(
            status_code=502,
            detail={"ok": False, "error": _error_detail(exc)},
        ) from exc
    return {"ok": True, "data": {"subdomain": normalized, "available": available}}


@router.get("/{tenant_id}")
def get_tenant(tenant_id: uuid.UUID, db: Session = Depends(get_db)) -> dict:
    tenant = _get_tenant(db, tenant_id)
    return {"ok": True, "data": {"tenant": _tenant_response(tenant).model_dump(mode="json")}}


@router.put("/{tenant_id}")
def update_tenant(
    tenant_id: uuid.UUID,
    payload: TenantUpdateRequest,
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator | None = Depends(get_orchestrator),
) -> dict:
    tenant = _get_tenant(db, tenant_id)

    flavor = payload.deployment_flavor or tenant.deployment_flavor
    links = payload.links if payload.links is not None else tenant.links
    raw_html = _empty_to_none(payload.raw_html) if payload.raw_html is not None else tenant.raw_html
    error = flavor_content_error(flavor, links or [], raw_html)
    if error:
        raise HTTPException(
            status_code=400,
            detail={"ok": False, "error": {"code": "VALIDATION_ERROR", "message": error}},
        )

    if payload.name:
        tenant.name = payload.name
    if payload.description is not None:
        tenant.description = payload.description
    if payload.links is not None:
        tenant.links = [link.model_dump() for link in payload.links]
    if payload.customization is not None:
        tenant.customization = payload.customization.model_dump(by_alias=True, exclude_none=True)
    if payload.logo_url is not None:
        tenant.logo_url = _empty_to_none(payload.logo_url)
    if payload.deployment_flavor is not None:
        tenant.deployment_flavor = payload.deployment_flavor
    if payload.raw_html is not None:
        tenant.raw_html = _empty_to_none(payload.raw_html)

    db.add(tenant)
    db.commit()
    db.refresh(tenant)

    if tenant.is_deployed:
        orchestrator = require_orchestrator(orchestrator)
        with tenant_lock(get_redis_client(), tenant.subdomain, ttl_seconds=settings.TENANT_LOCK_TTL_SECONDS):
            result = orchestrator.update(_descriptor(tenant))
        if not result.ok:
            raise _saga_exception(result)

    return {"ok": True, "data": {"tenant": _tenant_response(tenant).model_dump(mode="json")}}


@router.delete("/{tenant_id}")
def delete_tenant(tenant_id: uuid.UUID, db: Session = Depends(get_db)) -> dict:
    tenant = _get_tenant(db, tenant_id)
    if tenant.is_deployed:
        raise HTTPException(
            status_code=409,
            detail={
                "ok": False,
                "error": {"code": "TENANT_DEPLOYED", "message": "Undeploy the tenant before deleting it."},
            },
        )
    db.delete(tenant)
    db.commit()
    return {"ok": True, "data": {"deleted": True}}


@router.post("/{tenant_id}/deploy")
def deploy_tenant(
    tenant_id: uuid.UUID,
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator = Depends(require_orchestrator),
) -> dict:
    tenant = _get_tenant(db, tenant_id)
    logger.info("deploy_requested", tenant_id=str(tenant.id), subdomain=tenant.subdomain)
    with tenant_lock(get_redis_client(), tenant.subdomain, ttl_seconds=settings.TENANT_LOCK_TTL_SECONDS):
        result = orchestrator.deploy(_descriptor(tenant))
        _persist_flag(db, tenant, result)
    if not result.ok:
        raise _saga_exception(result)
    return {
        "ok": True,
        "data": {
            "tenant": _tenant_response(tenant).model_dump(mode="json"),
            "domain": fqdn(tenant.subdomain, orchestrator.base_domain),
        },
    }


@router.delete("/{tenant_id}/deploy", response_model=None)
def undeploy_tenant(
    tenant_id: uuid.UUID,
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator = Depends(require_orchestrator),
) -> dict | JSONResponse:
    tenant = _get_tenant(db, tenant_id)
    logger.info("undeploy_requested", tenant_id=str(tenant.id), subdomain=tenant.subdomain)
    with tenant_lock(get_redis_client(), tenant.subdomain, ttl_seconds=settings.TENANT_LOCK_TTL_SECONDS):
        result = orchestrator.undeploy(_descriptor(tenant))
        _persist_flag(db, tenant, result)

    data = {"tenant": _tenant_response(tenant).model_dump(mode="json")}
    if result.ok:
        return {"ok": True, "data": data}
    if result.partial:
        return JSONResponse(
            status_code=207,
            content={
                "ok": True,
                "data": data,
                "warnings": [_error_detail(error) for error in result.errors],
            },
        )
    raise HTTPException(
        status_code=502,
        detail={
            "ok": False,
            "error": {
                "code": "UNDEPLOY_FAILED",
                "message": "Failed to undeploy tenant.",
                "details": [_error_detail(error) for error in result.errors],
            },
        },
    )


def _get_tenant(db: Session, tenant_id: uuid.UUID) -> Tenant:
    tenant = db.execute(select(Tenant).where(Tenant.id == tenant_id)).scalar_one_or_none()
    if not tenant:
        raise HTTPException(
            status_code=404,
            detail={"ok": False, "error": {"code": "NOT_FOUND", "message": "Tenant not found."}},
        )
    return tenant


def _persist_flag(db: Session, tenant: Tenant, result: SagaResult) -> None:
    if tenant.is_deployed == result.is_deployed:
        return
    tenant.is_deployed = result.is_deployed
    db.add(tenant)
    db.commit()
    db.refresh(tenant)


def _descriptor(tenant: Tenant) -> TenantDescriptor:
    customization = tenant.customization or {}
    display = DisplayData(
        name=tenant.name,
        description=tenant.description or "",
        links=tuple(
            Link(title=link.title, url=link.url, icon=link.icon, order=link.order)
            for link in (LinkSchema.model_validate(item) for item in tenant.links or [])
        ),
        customization=Customization(
            background_color=customization.get("backgroundColor"),
            text_color=customization.get("textColor"),
            button_style=customization.get("buttonStyle"),
            font=customization.get("font"),
        ),
        logo_url=tenant.logo_url,
        flavor=tenant.deployment_flavor,
        raw_html=tenant.raw_html,
    )
    return TenantDescriptor(
        subdomain=tenant.subdomain,
        display=display,
        status=DeploymentStatus.from_flag(tenant.is_deployed),
    )


def _error_detail(exc: Exception) -> dict:
    cause = exc.cause if isinstance(exc, PhaseFailed) else exc
    detail: dict = {"code": getattr(exc, "code", "ERROR"), "message": str(cause)}
    if isinstance(cause, ProviderApiError):
        detail["provider"] = cause.provider
        detail["kind"] = cause.kind.value
        detail["status_code"] = cause.status_code
    if isinstance(exc, PhaseFailed) and exc.compensation_errors:
        detail["compensation_errors"] = [str(error) for error in exc.compensation_errors]
    return detail


def _saga_exception(result: SagaResult) -> HTTPException:
    error = result.error
    if isinstance(error, PreconditionError):
        status_code = 409
    elif isinstance(error, PhaseFailed) and isinstance(error.cause, PreconditionError):
        status_code = 500
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail={"ok": False, "error": _error_detail(error)})


def _subdomain_taken() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"ok": False, "error": {"code": "SUBDOMAIN_TAKEN", "message": "Subdomain is already in use."}},
    )


def _empty_to_none(value: str | None) -> str | None:
    if value == "":
        return None
    return value


def _tenant_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=str(tenant.id),
        name=tenant.name,
        subdomain=tenant.subdomain,
        description=tenant.description or "",
        links=[LinkSchema.model_validate(item) for item in tenant.links or []],
        customization=tenant.customization or {},
        logo_url=tenant.logo_url,
        deployment_flavor=tenant.deployment_flavor.value,
        raw_html=tenant.raw_html,
        is_deployed=tenant.is_deployed,
    )
