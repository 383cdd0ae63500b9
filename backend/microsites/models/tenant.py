from __future__ import annotations

import uuid
from sqlalchemy import JSON, Boolean, Enum, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from microsites.models.base import Base, TimestampMixin
from microsites.services.descriptor import DeploymentFlavor


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    links: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    customization: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    logo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    deployment_flavor: Mapped[DeploymentFlavor] = mapped_column(
        Enum(DeploymentFlavor, name="deployment_flavor", values_callable=lambda enum: [item.value for item in enum]),
        nullable=False,
        default=DeploymentFlavor.TEMPLATE,
    )
    raw_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deployed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    __table_args__ = (Index("ix_tenants_created", "created_at"),)
