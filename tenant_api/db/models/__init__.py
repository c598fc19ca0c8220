"""Model module imports for SQLAlchemy metadata registration."""

from tenant_api.db.models.organization import Base
from tenant_api.db.models.organization import Organization

__all__ = [
    "Base",
    "Organization",
]
