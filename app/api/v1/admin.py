from fastapi import APIRouter, Depends

from app.api.deps import require_roles
from app.core.rate_limit import rate_limiter
from app.models.user import RoleEnum

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/security/rate-limits", dependencies=[Depends(require_roles(RoleEnum.admin))])
async def rate_limit_stats():
    return {"trackedIdentifiers": rate_limiter.tracked()}
