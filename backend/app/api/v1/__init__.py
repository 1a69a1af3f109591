"""
API v1 Router - Cooperative Governance
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    members,
    proposals,
    distributions,
    settings,
)
from app.schemas.common import ErrorResponse

# Every GovernanceException is rendered with the ErrorResponse body
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation, duplicate or invalid state"},
    403: {"model": ErrorResponse, "description": "Member not eligible"},
    404: {"model": ErrorResponse, "description": "Not found in this tenant"},
    409: {"model": ErrorResponse, "description": "Voting closed, already paid or concurrent change"},
    422: {"model": ErrorResponse, "description": "Business rule violation"},
}

router = APIRouter(responses=ERROR_RESPONSES)

# Members, investments and voting eligibility
router.include_router(members.router)

# Proposals and voting
router.include_router(proposals.router)

# Profit distribution
router.include_router(distributions.router)

# Cooperative settings (per-tenant policy)
router.include_router(settings.router)
