import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response

from app.core.exceptions import BookingError, InternalError, NotFoundError
from app.crud.booking import crud_booking
from app.db.core import BookingContext, get_booking_context
from app.schemas.booking import BOOKING_EXAMPLE, BookingListResponse, BookingResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"]
)

MUTABLE_FIELDS_NOTE = "Mutable fields: seats, user, payment_method, source, status, price_total, currency."


def _unexpected(action: str, e: Exception) -> InternalError:
    logger.error(f"Failed to {action}: {e}", exc_info=True)
    return InternalError(str(e))


@router.get("",
            summary="List bookings",
            description="Filters: id|_id|booking_id, movie_id, cinema_id, showtime_id, user_id, status, "
                        "source, payment_method, email, date_from, date_to. Also sort, limit, page and flat.",
            responses={200: {"model": BookingListResponse}, 400: {"model": ErrorResponse}})
async def list_bookings(request: Request, ctx: BookingContext = Depends(get_booking_context)):
    try:
        return await crud_booking.list_bookings(ctx, dict(request.query_params))
    except BookingError:
        raise
    except Exception as e:
        raise _unexpected("list bookings", e)


@router.post("",
             status_code=201,
             summary="Create a booking",
             responses={201: {"model": BookingResponse}, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def create_booking(payload: Dict[str, Any] = Body(..., examples=[BOOKING_EXAMPLE]),
                         ctx: BookingContext = Depends(get_booking_context)):
    try:
        return await crud_booking.create_booking(ctx, payload)
    except BookingError:
        raise
    except Exception as e:
        raise _unexpected("create booking", e)


@router.get("/{booking_id}",
            summary="Get a booking by id",
            responses={200: {"model": BookingResponse}, 404: {"model": ErrorResponse}})
async def get_booking(booking_id: str, ctx: BookingContext = Depends(get_booking_context)):
    try:
        return await crud_booking.get_booking(ctx, booking_id)
    except BookingError:
        raise
    except Exception as e:
        raise _unexpected("get booking", e)


@router.put("/{booking_id}",
            summary="Logical replace (mutable fields only)",
            description=MUTABLE_FIELDS_NOTE,
            responses={200: {"model": BookingResponse}, 400: {"model": ErrorResponse},
                       404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def replace_booking(booking_id: str,
                          payload: Dict[str, Any] = Body(...),
                          ctx: BookingContext = Depends(get_booking_context)):
    try:
        return await crud_booking.replace_booking(ctx, booking_id, payload)
    except BookingError:
        raise
    except Exception as e:
        raise _unexpected("replace booking", e)


@router.patch("/{booking_id}",
              summary="Partial update (mutable fields only)",
              description=MUTABLE_FIELDS_NOTE,
              responses={200: {"model": BookingResponse}, 400: {"model": ErrorResponse},
                         404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
async def patch_booking(booking_id: str,
                        payload: Dict[str, Any] = Body(...),
                        ctx: BookingContext = Depends(get_booking_context)):
    try:
        return await crud_booking.patch_booking(ctx, booking_id, payload)
    except BookingError:
        raise
    except Exception as e:
        raise _unexpected("patch booking", e)


@router.delete("/{booking_id}",
               status_code=204,
               summary="Delete a booking",
               responses={404: {"model": ErrorResponse}})
async def delete_booking(booking_id: str, ctx: BookingContext = Depends(get_booking_context)):
    try:
        deleted = await crud_booking.delete_booking(ctx, booking_id)
    except Exception as e:
        raise _unexpected("delete booking", e)
    if not deleted:
        raise NotFoundError()
    return Response(status_code=204)
