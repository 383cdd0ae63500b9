from __future__ import annotations

from typing import Any

import httpx
import structlog

from microsites.services.errors import ProviderApiError, ProviderErrorKind
from microsites.services.provider_http import ProviderHttp

logger = structlog.get_logger(__name__)

PROVIDER = "godaddy"
RECORD_TYPE = "A"


def _is_duplicate(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if payload.get("code") == "DUPLICATE_RECORD":
        return True
    return "already exists" in str(payload.get("message", "")).lower()


class GoDaddyDns:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        domain: str,
        server_ip: str,
        *,
        base_url: str = "https://api.godaddy.com",
        ttl: int = 600,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.domain = domain
        self.server_ip = server_ip
        self.ttl = ttl
        self._http = ProviderHttp(
            PROVIDER,
            base_url,
            {
                "Authorization": f"sso-key {api_key}:{api_secret}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout_s=timeout_s,
            http_client=http_client,
        )

    def _record_endpoint(self, subdomain: str) -> str:
        return f"/v1/domains/{self.domain}/records/{RECORD_TYPE}/{subdomain}"

    def find_records(self, subdomain: str) -> list[dict]:
        try:
            payload = self._http.send_json("GET", self._record_endpoint(subdomain), endpoint="GET records")
        except ProviderApiError as exc:
            if exc.kind is ProviderErrorKind.NOT_FOUND:
                return []
            raise
        return payload if isinstance(payload, list) else []

    def is_available(self, subdomain: str) -> bool:
        records = self.find_records(subdomain)
        logger.info("godaddy_records_checked", subdomain=subdomain, count=len(records))
        return len(records) == 0

    def create(self, subdomain: str) -> None:
        records = [{"data": self.server_ip, "name": subdomain, "ttl": self.ttl, "type": RECORD_TYPE}]
        try:
            self._http.send(
                "PATCH", f"/v1/domains/{self.domain}/records", endpoint="PATCH records", json=records
            )
        except ProviderApiError as exc:
            exc.already_exists = _is_duplicate(exc.detail)
            raise
        logger.info("godaddy_record_created", subdomain=subdomain)

    def delete(self, subdomain: str) -> None:
        if not self.find_records(subdomain):
            logger.info("godaddy_record_absent", subdomain=subdomain)
            return
        try:
            self._http.send("DELETE", self._record_endpoint(subdomain), endpoint="DELETE records")
        except ProviderApiError as exc:
            if exc.kind is not ProviderErrorKind.NOT_FOUND:
                raise
        logger.info("godaddy_record_deleted", subdomain=subdomain)
