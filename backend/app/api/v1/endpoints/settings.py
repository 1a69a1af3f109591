"""
Cooperative Settings API Endpoints

Per-tenant governance policy:
- Cooperative model (worker, consumer, hybrid)
- Which member types receive profit shares vs dividends
- Dividend basis (ownership shares or invested capital)
- Default quorum / approval threshold for new proposals
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.api.v1.deps import Governance
from app.logging_config import get_logger
from app.schemas.common import Percent
from app.services.cooperative_settings import CooperativeSettingsService

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/settings", tags=["Cooperative Settings"])

MemberTypeLiteral = Literal["driver", "customer", "staff", "other"]


# ============================================================================
# SCHEMAS
# ============================================================================

class CooperativeSettingsResponse(BaseModel):
    """Cooperative settings response"""
    tenant_id: int
    cooperative_model: str
    profit_share_member_types: List[str]
    dividend_member_types: List[str]
    dividend_basis: str
    dividend_pool_percentage: Percent
    default_quorum_required: Optional[Percent] = None
    default_approval_threshold: Optional[Percent] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class CooperativeSettingsUpdate(BaseModel):
    """Update cooperative settings (omitted fields are unchanged)"""
    cooperative_model: Optional[Literal["worker", "consumer", "hybrid"]] = None
    profit_share_member_types: Optional[List[MemberTypeLiteral]] = None
    dividend_member_types: Optional[List[MemberTypeLiteral]] = None
    dividend_basis: Optional[Literal["shares", "investment"]] = None
    dividend_pool_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    default_quorum_required: Optional[Decimal] = Field(None, ge=0, le=100)
    default_approval_threshold: Optional[Decimal] = Field(None, ge=0, le=100)


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("", response_model=CooperativeSettingsResponse)
def get_cooperative_settings(governance: Governance):
    """Get the tenant's settings, creating the defaults on first access"""
    row = CooperativeSettingsService(governance.db, governance.tenant_id).get_or_create()
    governance.db.commit()
    governance.db.refresh(row)
    return row


@router.put("", response_model=CooperativeSettingsResponse)
def update_cooperative_settings(data: CooperativeSettingsUpdate, governance: Governance):
    changes = data.model_dump(exclude_unset=True)
    # Only the voting defaults may be cleared back to the process defaults
    changes = {
        field: value for field, value in changes.items()
        if value is not None or field in ("default_quorum_required", "default_approval_threshold")
    }
    row = CooperativeSettingsService(governance.db, governance.tenant_id).update(changes)
    governance.db.commit()
    governance.db.refresh(row)

    logger.info(
        "Cooperative settings saved",
        extra={"tenant_id": governance.tenant_id, "user_id": governance.user_id},
    )
    return row
