"""
API Dependencies

Tenant/user context and service factories shared by the governance
routers. Authentication happens upstream; this layer trusts the
X-Tenant-ID and X-User-ID headers set by the gateway.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.governance import GovernanceService

__all__ = [
    "get_db",
    "get_tenant_id",
    "get_user_id",
    "get_governance",
    "TenantId",
    "UserId",
    "Governance",
]


def get_tenant_id(
    x_tenant_id: Annotated[int, Header(alias="X-Tenant-ID", gt=0, description="Tenant (cooperative) ID")],
) -> int:
    """
    Dependency returning the tenant every query is scoped to.

    A missing or non-numeric header fails request validation (422).
    """
    return x_tenant_id


def get_user_id(
    x_user_id: Annotated[Optional[int], Header(alias="X-User-ID", description="Acting user, for audit fields")] = None,
) -> Optional[int]:
    return x_user_id


TenantId = Annotated[int, Depends(get_tenant_id)]
UserId = Annotated[Optional[int], Depends(get_user_id)]


def get_governance(
    tenant_id: TenantId,
    user_id: UserId,
    db: Session = Depends(get_db),
) -> GovernanceService:
    """Dependency building the tenant-scoped governance facade."""
    return GovernanceService(db, tenant_id, user_id=user_id)


Governance = Annotated[GovernanceService, Depends(get_governance)]
