from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.business.catalog.api import router as catalog_router
from app.business.customers.api import router as customers_router
from app.business.leads.api import router as leads_router
from app.business.notifications.api import router as notifications_router
from app.business.orders.api import router as orders_router
from app.business.otp.api import router as otp_router
from app.business.reporting.dashboard.api import router as dashboard_router
from app.business.subscription.api import router as subscriptions_router
from app.business.users.api import router as users_router
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(leads_router)
router.include_router(customers_router)
router.include_router(catalog_router)
router.include_router(orders_router)
router.include_router(subscriptions_router)
router.include_router(notifications_router)
router.include_router(otp_router)
router.include_router(users_router)
router.include_router(dashboard_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
