from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from microsites.services.orchestrator import DeploymentOrchestrator


def get_orchestrator(request: Request) -> DeploymentOrchestrator | None:
    return getattr(request.app.state, "orchestrator", None)


def require_orchestrator(
    orchestrator: DeploymentOrchestrator | None = Depends(get_orchestrator),
) -> DeploymentOrchestrator:
    if orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail={
                "ok": False,
                "error": {
                    "code": "SERVICE_UNAVAILABLE",
                    "message": "Deployment services are currently unavailable. Please try again later.",
                },
            },
        )
    return orchestrator
