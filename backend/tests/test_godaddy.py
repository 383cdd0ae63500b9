from __future__ import annotations

import json

import httpx
import pytest

from microsites.services.errors import ProviderApiError, ProviderErrorKind
from microsites.services.godaddy import GoDaddyDns

RECORD_PATH = "/v1/domains/example.com/records/A/acme"


def _api(handler) -> GoDaddyDns:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoDaddyDns("key", "secret", "example.com", "203.0.113.10", base_url="https://gd.test", http_client=client)


def test_is_available_on_empty_listing_and_404():
    def empty(request: httpx.Request) -> httpx.Response:
        assert request.url.path == RECORD_PATH
        assert request.headers["Authorization"] == "sso-key key:secret"
        return httpx.Response(200, json=[])

    def missing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": "NOT_FOUND", "message": "Not found"})

    assert _api(empty).is_available("acme") is True
    assert _api(missing).is_available("acme") is True


def test_existing_record_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"data": "203.0.113.10", "name": "acme", "type": "A"}])

    assert _api(handler).is_available("acme") is False


def test_create_patches_records():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/v1/domains/example.com/records"
        assert json.loads(request.content.decode("utf-8")) == [
            {"data": "203.0.113.10", "name": "acme", "ttl": 600, "type": "A"}
        ]
        return httpx.Response(200)

    _api(handler).create("acme")


def test_create_duplicate_marks_already_exists():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"code": "DUPLICATE_RECORD", "message": "Another record exists"})

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).create("acme")
    assert excinfo.value.already_exists is True


def test_delete_skips_absent_record():
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(404, json={"code": "NOT_FOUND", "message": "Not found"})

    _api(handler).delete("acme")
    assert methods == ["GET"]


def test_delete_existing_record():
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        if request.method == "GET":
            return httpx.Response(200, json=[{"name": "acme", "type": "A"}])
        assert request.url.path == RECORD_PATH
        return httpx.Response(204)

    _api(handler).delete("acme")
    assert methods == ["GET", "DELETE"]


def test_provider_message_is_kept():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"code": "INTERNAL", "message": "Upstream exploded"})

    with pytest.raises(ProviderApiError) as excinfo:
        _api(handler).is_available("acme")
    assert excinfo.value.kind is ProviderErrorKind.PROVIDER_ERROR
    assert str(excinfo.value) == "Upstream exploded"
