from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from microsites.services.errors import PreconditionError

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+$")


class DeploymentFlavor(str, Enum):
    TEMPLATE = "template"
    CUSTOM_HTML = "custom-html"


class DeploymentStatus(str, Enum):
    NOT_DEPLOYED = "NOT_DEPLOYED"
    DEPLOYED = "DEPLOYED"
    PARTIALLY_UNDEPLOYED = "PARTIALLY_UNDEPLOYED"

    @property
    def is_deployed(self) -> bool:
        return self is DeploymentStatus.DEPLOYED

    @classmethod
    def from_flag(cls, deployed: bool) -> DeploymentStatus:
        return cls.DEPLOYED if deployed else cls.NOT_DEPLOYED


@dataclass(frozen=True)
class Link:
    title: str
    url: str
    icon: str = "link"
    order: int = 0


@dataclass(frozen=True)
class Customization:
    background_color: str | None = None
    text_color: str | None = None
    button_style: str | None = None
    font: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "backgroundColor": self.background_color,
            "textColor": self.text_color,
            "buttonStyle": self.button_style,
            "font": self.font,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class DisplayData:
    name: str
    description: str = ""
    links: tuple[Link, ...] = ()
    customization: Customization = field(default_factory=Customization)
    logo_url: str | None = None
    flavor: DeploymentFlavor = DeploymentFlavor.TEMPLATE
    raw_html: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Client data as consumed by the deployed site template. Never includes raw HTML."""
        return {
            "name": self.name,
            "description": self.description,
            "links": [
                {"title": link.title, "url": link.url, "icon": link.icon, "order": link.order}
                for link in self.links
            ],
            "customization": self.customization.to_payload(),
            "logo": self.logo_url or None,
            "deploymentType": self.flavor.value,
        }


@dataclass(frozen=True)
class TenantDescriptor:
    subdomain: str
    display: DisplayData
    status: DeploymentStatus = DeploymentStatus.NOT_DEPLOYED

    def __post_init__(self) -> None:
        if not SUBDOMAIN_PATTERN.match(self.subdomain or ""):
            raise PreconditionError("INVALID_SUBDOMAIN", f"Invalid subdomain {self.subdomain!r}.")
