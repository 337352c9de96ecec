from fastapi import APIRouter, Depends

from shield.app.api.deps import rate_limited, require_admin_guarded
from shield.app.middleware.rate_limit.routes import ADMIN

# Runs before the token check, so rejected tokens still count
router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(rate_limited(ADMIN)), Depends(require_admin_guarded)],
)

from . import security  # noqa: E402

router.include_router(security.router, prefix="/security", tags=["admin-security"])
