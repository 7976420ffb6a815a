from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from common.core.config import settings
from common.db.session import get_db
from common.core.otel_axiom_exporter import get_logger
from packages.billing.dependencies import get_payment_provider_dependency
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def health_check():
    # No logging - k8s probes hit this every 5-10s
    return {"status": "healthy", "service": settings.app_name}


@router.get("/db")
async def db_check(db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "database": "disconnected"}


@router.get("/billing")
async def billing_check(
    payment: PaymentProviderInterface = Depends(get_payment_provider_dependency),
):
    if await payment.health_check():
        return {"status": "healthy", "billing_provider": "reachable"}
    return {"status": "unhealthy", "billing_provider": "unreachable"}
