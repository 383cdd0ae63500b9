from __future__ import annotations

import json

import httpx
import pytest

from microsites.services.coolify import AppTemplate, ApplicationHandle, ApplicationSpec, CoolifyDeployments
from microsites.services.environment import EnvironmentVariable
from microsites.services.errors import PreconditionError, ProviderApiError, ProviderErrorKind


def _template(**overrides) -> AppTemplate:
    values = {
        "git_repository": "https://github.com/example/site-template",
        "project_uuid": "project-1",
        "server_uuid": "server-1",
        "environment_uuid": "env-1",
    }
    values.update(overrides)
    return AppTemplate(**values)


def _api(handler, template: AppTemplate | None = None) -> CoolifyDeployments:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CoolifyDeployments("https://coolify.test/", "key", template or _template(), http_client=client)


def test_find_by_name_is_exact():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/applications"
        assert request.headers["Authorization"] == "Bearer key"
        return httpx.Response(
            200,
            json=[
                {"uuid": "u-1", "name": "Acme"},
                {"uuid": "u-2", "name": "acme-staging"},
                {"uuid": "u-3", "name": "acme"},
            ],
        )

    api = _api(handler)
    assert api.find_by_name("acme") == ApplicationHandle(uuid="u-3", name="acme")


def test_find_by_name_ignores_near_matches():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"uuid": "u-1", "name": "Acme"}, {"uuid": "u-2", "name": "acme-staging"}])

    assert _api(handler).find_by_name("acme") is None


def test_create_requires_static_configuration_before_any_request():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json={"uuid": "u-1"})

    api = _api(handler, _template(git_repository=None, server_uuid=""))
    with pytest.raises(PreconditionError) as excinfo:
        api.create(ApplicationSpec(name="acme", domain="acme.example.com"))
    assert excinfo.value.code == "MISSING_STATIC_CONFIG"
    assert "git_repository" in str(excinfo.value)
    assert "server_uuid" in str(excinfo.value)
    assert calls["count"] == 0


def test_create_sends_public_application():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/v1/applications/public"
        payload = json.loads(request.content.decode("utf-8"))
        assert payload["name"] == "acme"
        assert payload["description"] == "Rockets"
        assert payload["domains"] == "https://acme.example.com"
        assert payload["docker_compose_domains"] == [{"name": "web", "domain": "https://acme.example.com"}]
        assert payload["git_repository"] == "https://github.com/example/site-template"
        assert payload["build_pack"] == "dockercompose"
        assert payload["ports_exposes"] == 3000
        assert payload["health_check_port"] == "3000"
        assert payload["health_check_path"] == "/api/health"
        assert payload["instant_deploy"] is False
        return httpx.Response(201, json={"uuid": "u-9"})

    handle = _api(handler).create(ApplicationSpec(name="acme", domain="acme.example.com", description="Rockets"))
    assert handle == ApplicationHandle(uuid="u-9", name="acme")


def test_create_without_uuid_in_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={})

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).create(ApplicationSpec(name="acme", domain="acme.example.com"))
    assert excinfo.value.kind is ProviderErrorKind.PROVIDER_ERROR
    assert excinfo.value.provider == "coolify"


def test_set_environment_bulk_replaces():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/api/v1/applications/u-1/envs/bulk"
        assert json.loads(request.content.decode("utf-8")) == {
            "data": [
                {"key": "CLIENT_DATA", "value": "{}", "is_literal": True},
                {"key": "NODE_ENV", "value": "production", "is_literal": True},
            ]
        }
        return httpx.Response(201, json={"message": "ok"})

    _api(handler).set_environment(
        ApplicationHandle(uuid="u-1", name="acme"),
        [EnvironmentVariable("CLIENT_DATA", "{}"), EnvironmentVariable("NODE_ENV", "production")],
    )


def test_trigger_deploy():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/v1/deploy"
        assert request.url.params.get("uuid") == "u-1"
        return httpx.Response(200, json={"deployments": [{"message": "queued"}]})

    _api(handler).trigger_deploy(ApplicationHandle(uuid="u-1", name="acme"))


def test_delete_missing_application_is_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(404, json={"message": "Application not found."})

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).delete(ApplicationHandle(uuid="u-1", name="acme"))
    assert excinfo.value.kind is ProviderErrorKind.NOT_FOUND


def test_unreadable_listing_is_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>gateway</html>")

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).find_by_name("acme")
    assert excinfo.value.kind is ProviderErrorKind.TRANSPORT_ERROR


def test_wrapped_listing_is_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"uuid": "u-1", "name": "acme"}]})

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).find_by_name("acme")
    assert excinfo.value.kind is ProviderErrorKind.TRANSPORT_ERROR


def test_find_by_name_skips_malformed_entries():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["acme", None, {"uuid": "u-3", "name": "acme"}])

    assert _api(handler).find_by_name("acme") == ApplicationHandle(uuid="u-3", name="acme")
