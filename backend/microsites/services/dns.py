from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class DnsProvider(Protocol):
    """Name records for tenant subdomains under the base domain.

    ``delete`` of a missing record succeeds. ``create`` is not idempotent at
    the provider: callers check ``is_available`` first and treat an
    ``already_exists`` error as success.
    """

    domain: str

    def is_available(self, subdomain: str) -> bool: ...

    def create(self, subdomain: str) -> None: ...

    def delete(self, subdomain: str) -> None: ...


def fqdn(subdomain: str, domain: str) -> str:
    return f"{subdomain}.{domain}"
