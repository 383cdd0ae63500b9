from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from microsites.db import get_db
from microsites.deps import get_orchestrator
from microsites.main import app
from microsites.models.base import Base
from microsites import models as _models  # noqa: F401
from microsites.services.coolify import ApplicationHandle
from microsites.services.orchestrator import DeploymentOrchestrator


class FakeDns:
    domain = "example.com"

    def __init__(self) -> None:
        self.records: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, Exception] = {}

    def _call(self, operation: str, subdomain: str) -> None:
        self.calls.append((operation, subdomain))
        exc = self.fail_on.get(operation)
        if exc:
            raise exc

    def is_available(self, subdomain: str) -> bool:
        self._call("is_available", subdomain)
        return self.records.get(subdomain, 0) == 0

    def create(self, subdomain: str) -> None:
        self._call("create", subdomain)
        self.records[subdomain] = self.records.get(subdomain, 0) + 1

    def delete(self, subdomain: str) -> None:
        self._call("delete", subdomain)
        self.records.pop(subdomain, None)


class FakeDeployments:
    def __init__(self) -> None:
        self.apps: dict[str, ApplicationHandle] = {}
        self.created: list = []
        self.environments: dict[str, list] = {}
        self.deploys: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    def _check(self, operation: str) -> None:
        exc = self.fail_on.get(operation)
        if exc:
            raise exc

    def find_by_name(self, name: str) -> ApplicationHandle | None:
        self._check("find_by_name")
        return self.apps.get(name)

    def create(self, spec) -> ApplicationHandle:
        self._check("create")
        handle = ApplicationHandle(uuid=f"app-{len(self.created) + 1}", name=spec.name)
        self.apps[spec.name] = handle
        self.created.append(spec)
        return handle

    def set_environment(self, handle: ApplicationHandle, variables) -> None:
        self._check("set_environment")
        self.environments[handle.uuid] = list(variables)

    def trigger_deploy(self, handle: ApplicationHandle) -> None:
        self._check("trigger_deploy")
        self.deploys.append(handle.uuid)

    def delete(self, handle: ApplicationHandle) -> None:
        self._check("delete")
        self.apps.pop(handle.name, None)


class FakeLock:
    def __init__(self, redis_client: "FakeRedis", name: str) -> None:
        self.redis_client = redis_client
        self.name = name

    def acquire(self, blocking: bool = True) -> bool:
        if self.name in self.redis_client.locks:
            return False
        self.redis_client.locks.add(self.name)
        return True

    def release(self) -> None:
        self.redis_client.locks.discard(self.name)


class FakeRedis:
    def __init__(self) -> None:
        self.locks: set[str] = set()

    def lock(self, name: str, timeout: int | None = None) -> FakeLock:
        return FakeLock(self, name)


@pytest.fixture()
def fake_dns():
    return FakeDns()


@pytest.fixture()
def fake_deployments():
    return FakeDeployments()


@pytest.fixture()
def orchestrator(fake_dns, fake_deployments):
    return DeploymentOrchestrator(fake_dns, fake_deployments, base_domain="example.com")


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client(db_session, orchestrator, fake_redis, monkeypatch):
    def override_get_db():
        yield db_session

    from microsites.routes import tenants as tenant_routes

    monkeypatch.setattr(tenant_routes, "get_redis_client", lambda: fake_redis)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_orchestrator, None)
