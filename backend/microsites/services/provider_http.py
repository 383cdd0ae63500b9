from __future__ import annotations

from typing import Any, Callable

import httpx
import structlog

from microsites.services.errors import ProviderApiError, ProviderErrorKind, kind_for_status

logger = structlog.get_logger(__name__)

MessageExtractor = Callable[[Any], "str | None"]


def _default_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class ProviderHttp:
    """HTTP transport shared by the provider adapters.

    Maps transport failures and non-2xx responses onto ``ProviderApiError`` so
    every adapter surfaces the same failure taxonomy. Nothing is retried here.
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        headers: dict[str, str],
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
        message_extractor: MessageExtractor | None = None,
    ) -> None:
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.timeout = timeout_s
        self._http_client = http_client
        self._message_extractor = message_extractor or _default_message

    def _client(self) -> httpx.Client:
        return httpx.Client(headers=self.headers, timeout=self.timeout)

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._http_client:
            return self._http_client.request(method, url, headers=self.headers, **kwargs)
        with self._client() as client:
            return client.request(method, url, **kwargs)

    def send(self, method: str, path: str, *, endpoint: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "provider_request_failed",
                provider=self.provider,
                endpoint=endpoint,
                error=str(exc),
            )
            raise ProviderApiError(
                f"{self.provider} request failed: {exc}",
                kind=ProviderErrorKind.TRANSPORT_ERROR,
                provider=self.provider,
            ) from exc
        if response.status_code >= 400:
            raise self._error_from_response(response, endpoint)
        return response

    def send_json(self, method: str, path: str, *, endpoint: str, **kwargs: Any) -> Any:
        response = self.send(method, path, endpoint=endpoint, **kwargs)
        return self.decode(response, endpoint)

    def decode(self, response: httpx.Response, endpoint: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("provider_response_invalid", provider=self.provider, endpoint=endpoint)
            raise ProviderApiError(
                f"{self.provider} returned an unreadable response.",
                kind=ProviderErrorKind.TRANSPORT_ERROR,
                provider=self.provider,
                status_code=response.status_code,
            ) from exc

    def _error_from_response(self, response: httpx.Response, endpoint: str) -> ProviderApiError:
        kind = kind_for_status(response.status_code)
        try:
            payload = response.json()
        except ValueError:
            payload = response.text or None
        logger.error(
            "provider_request_error",
            provider=self.provider,
            endpoint=endpoint,
            status_code=response.status_code,
            kind=kind.value,
        )
        message = None
        if kind is ProviderErrorKind.PROVIDER_ERROR:
            message = self._message_extractor(payload)
        if not message:
            message = f"{self.provider} returned an error ({response.status_code})."
        return ProviderApiError(
            message,
            kind=kind,
            provider=self.provider,
            status_code=response.status_code,
            detail=payload,
        )
