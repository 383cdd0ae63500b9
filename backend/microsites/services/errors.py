from __future__ import annotations

from enum import Enum
from typing import Any


class ProviderErrorKind(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


_STATUS_KINDS = {
    401: ProviderErrorKind.UNAUTHORIZED,
    403: ProviderErrorKind.FORBIDDEN,
    404: ProviderErrorKind.NOT_FOUND,
    429: ProviderErrorKind.RATE_LIMITED,
}


def kind_for_status(status_code: int) -> ProviderErrorKind:
    return _STATUS_KINDS.get(status_code, ProviderErrorKind.PROVIDER_ERROR)


class ProviderApiError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        kind: ProviderErrorKind,
        provider: str,
        status_code: int | None = None,
        detail: Any = None,
        already_exists: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.status_code = status_code
        self.detail = detail
        self.already_exists = already_exists

    @property
    def code(self) -> str:
        return self.kind.value


class PreconditionError(ValueError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class SagaPhase(str, Enum):
    DNS = "dns"
    DEPLOYMENT = "deployment"
    DNS_REMOVAL = "dns_removal"
    APPLICATION_REMOVAL = "application_removal"


class PhaseFailed(RuntimeError):
    """First fatal error of a saga phase.

    Compensation errors are kept as secondary diagnostics and never replace
    ``cause``.
    """

    def __init__(
        self,
        phase: SagaPhase,
        cause: Exception,
        *,
        compensation_errors: list[Exception] | None = None,
    ) -> None:
        super().__init__(f"{phase.value} phase failed: {cause}")
        self.phase = phase
        self.cause = cause
        self.compensation_errors = list(compensation_errors or [])

    @property
    def code(self) -> str:
        return f"{self.phase.value.upper()}_PHASE_FAILED"


SAGA_ERRORS = (ProviderApiError, PreconditionError)
