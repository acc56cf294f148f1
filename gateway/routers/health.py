"""Health check route."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.db.session import get_db
from gateway.services.delivery_service import pending_deliveries

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": {"status": "down", "error": str(e)}},
        )
    return {
        "status": "ok",
        "database": {"status": "up"},
        "deliveries_in_flight": len(pending_deliveries()),
    }
