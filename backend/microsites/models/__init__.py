# Import models here for Alembic autogenerate convenience
from .base import Base  # noqa: F401
from .tenant import Tenant  # noqa: F401
