from __future__ import annotations

import base64
import json
from dataclasses import dataclass

from microsites.services.descriptor import DisplayData

CLIENT_DATA_KEY = "CLIENT_DATA"
PUBLIC_CLIENT_DATA_KEY = "NEXT_PUBLIC_CLIENT_DATA"
ENVIRONMENT_MODE_KEY = "NODE_ENV"
ENVIRONMENT_MODE = "production"
CUSTOM_HTML_KEY = "NEXT_PUBLIC_CUSTOM_HTML_BASE64"


@dataclass(frozen=True)
class EnvironmentVariable:
    key: str
    value: str
    is_literal: bool = True

    def to_payload(self) -> dict:
        return {"key": self.key, "value": self.value, "is_literal": self.is_literal}


def serialize_client_data(display: DisplayData) -> str:
    return json.dumps(display.to_payload(), separators=(",", ":"), ensure_ascii=False)


def encode_html(raw_html: str) -> str:
    return base64.b64encode(raw_html.encode("utf-8")).decode("ascii")


def build_environment(display: DisplayData) -> list[EnvironmentVariable]:
    """Complete variable set for one tenant.

    The template reads client data from both the server-side and the public
    key, so both are always written. Raw HTML travels base64 encoded under its
    own key and is left out of the client data.
    """
    client_data = serialize_client_data(display)
    variables = [
        EnvironmentVariable(CLIENT_DATA_KEY, client_data),
        EnvironmentVariable(ENVIRONMENT_MODE_KEY, ENVIRONMENT_MODE),
        EnvironmentVariable(PUBLIC_CLIENT_DATA_KEY, client_data),
    ]
    if display.raw_html and display.raw_html.strip():
        variables.append(EnvironmentVariable(CUSTOM_HTML_KEY, encode_html(display.raw_html)))
    return variables
