import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.db.core import BookingContext, get_booking_context
from app.schemas.booking import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health",
            summary="Health check of the API and its document store",
            response_model=HealthResponse,
            response_model_exclude_none=True,
            responses={500: {"model": HealthResponse}})
async def health_check(ctx: BookingContext = Depends(get_booking_context)):
    try:
        await ctx.store.ping()
        return {"ok": True}
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
