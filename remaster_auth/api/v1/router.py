"""API v1 router aggregator.

All v1 endpoint routers are included here. The refresh endpoint is
mounted separately at the application root.
"""

from fastapi import APIRouter

from remaster_auth.api.v1 import auth, users

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])

# =============================================================================
# Users
# =============================================================================

router.include_router(users.router, prefix="/users", tags=["users"])
