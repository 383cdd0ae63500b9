from __future__ import annotations

from typing import Any

import httpx
import structlog

from microsites.services.dns import fqdn
from microsites.services.errors import ProviderApiError, ProviderErrorKind
from microsites.services.provider_http import ProviderHttp

logger = structlog.get_logger(__name__)

PROVIDER = "cloudflare"
# Record already exists / identical record already exists / CNAME conflict
DUPLICATE_RECORD_CODES = {81053, 81057, 81058}


def _error_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        errors = payload.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("message")
    return None


def _is_duplicate(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    for error in payload.get("errors") or []:
        if not isinstance(error, dict):
            continue
        if error.get("code") in DUPLICATE_RECORD_CODES:
            return True
        if "already exists" in str(error.get("message", "")).lower():
            return True
    return False


class CloudflareDns:
    def __init__(
        self,
        api_token: str,
        zone_id: str,
        domain: str,
        server_ip: str,
        *,
        base_url: str = "https://api.cloudflare.com/client/v4",
        proxied: bool = True,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.zone_id = zone_id
        self.domain = domain
        self.server_ip = server_ip
        self.proxied = proxied
        self._http = ProviderHttp(
            PROVIDER,
            base_url,
            {
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout_s=timeout_s,
            http_client=http_client,
            message_extractor=_error_message,
        )

    def _records_endpoint(self) -> str:
        return f"/zones/{self.zone_id}/dns_records"

    def find_records(self, subdomain: str) -> list[dict]:
        params = {"name": fqdn(subdomain, self.domain), "type": "A"}
        payload = self._http.send_json(
            "GET", self._records_endpoint(), endpoint="GET dns_records", params=params
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("result"), list):
            raise ProviderApiError(
                "Cloudflare returned an unexpected record listing.",
                kind=ProviderErrorKind.TRANSPORT_ERROR,
                provider=PROVIDER,
            )
        return payload["result"]

    def is_available(self, subdomain: str) -> bool:
        records = self.find_records(subdomain)
        logger.info("cloudflare_records_checked", subdomain=subdomain, count=len(records))
        return len(records) == 0

    def create(self, subdomain: str) -> None:
        payload = {
            "type": "A",
            "name": subdomain,
            "content": self.server_ip,
            "proxied": self.proxied,
        }
        try:
            self._http.send("POST", self._records_endpoint(), endpoint="POST dns_records", json=payload)
        except ProviderApiError as exc:
            exc.already_exists = _is_duplicate(exc.detail)
            raise
        logger.info("cloudflare_record_created", subdomain=subdomain)

    def delete(self, subdomain: str) -> None:
        records = self.find_records(subdomain)
        if not records:
            logger.info("cloudflare_record_absent", subdomain=subdomain)
            return
        for record in records:
            record_id = record.get("id") if isinstance(record, dict) else None
            if not record_id:
                logger.warning("cloudflare_record_without_id", subdomain=subdomain)
                continue
            try:
                self._http.send(
                    "DELETE",
                    f"{self._records_endpoint()}/{record_id}",
                    endpoint="DELETE dns_records",
                )
            except ProviderApiError as exc:
                if exc.kind is not ProviderErrorKind.NOT_FOUND:
                    raise
            logger.info("cloudflare_record_deleted", subdomain=subdomain, record_id=record_id)
