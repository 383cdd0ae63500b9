from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from microsites.services.descriptor import SUBDOMAIN_PATTERN, DeploymentFlavor


def flavor_content_error(flavor: DeploymentFlavor, links: list, raw_html: str | None) -> str | None:
    if flavor is DeploymentFlavor.TEMPLATE and not links:
        return "At least one link is required for template deployment."
    if flavor is DeploymentFlavor.CUSTOM_HTML and not (raw_html or "").strip():
        return "HTML code is required for custom HTML deployment."
    return None


def _parse_json_field(value: Any) -> Any:
    # Form-style clients send nested fields as JSON strings.
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError("Invalid JSON value.") from exc
    return value


class LinkSchema(BaseModel):
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    icon: str = "link"
    order: int = 0


class CustomizationSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    background_color: str | None = Field(default=None, alias="backgroundColor")
    text_color: str | None = Field(default=None, alias="textColor")
    button_style: str | None = Field(default=None, alias="buttonStyle")
    font: str | None = None


class TenantCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    subdomain: str
    description: str = ""
    links: list[LinkSchema] = Field(default_factory=list)
    customization: CustomizationSchema = Field(default_factory=CustomizationSchema)
    logo_url: str | None = None
    deployment_flavor: DeploymentFlavor = DeploymentFlavor.TEMPLATE
    raw_html: str | None = None

    @field_validator("subdomain")
    @classmethod
    def normalize_subdomain(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not SUBDOMAIN_PATTERN.match(normalized) or len(normalized) > 63:
            raise ValueError("Subdomain may only contain lowercase letters, numbers and hyphens.")
        return normalized

    @field_validator("links", "customization", mode="before")
    @classmethod
    def parse_json_strings(cls, value: Any) -> Any:
        return _parse_json_field(value)

    @model_validator(mode="after")
    def check_flavor(self) -> TenantCreateRequest:
        error = flavor_content_error(self.deployment_flavor, self.links, self.raw_html)
        if error:
            raise ValueError(error)
        return self


class TenantUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    links: list[LinkSchema] | None = None
    customization: CustomizationSchema | None = None
    logo_url: str | None = None
    deployment_flavor: DeploymentFlavor | None = None
    raw_html: str | None = None

    @field_validator("links", "customization", mode="before")
    @classmethod
    def parse_json_strings(cls, value: Any) -> Any:
        return _parse_json_field(value)


class TenantResponse(BaseModel):
    id: str
    name: str
    subdomain: str
    description: str
    links: list[LinkSchema]
    customization: dict
    logo_url: str | None
    deployment_flavor: str
    raw_html: str | None
    is_deployed: bool
