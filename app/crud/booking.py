import logging
from typing import Any, Dict, List, Mapping, Union

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.db.base import DuplicateKeyError
from app.db.core import BookingContext
from app.models.booking import ensure_no_immutable, pick_mutable
from app.services.normalizer import normalize_for_patch, normalize_on_create
from app.services.query_builder import build_list_query

logger = logging.getLogger(__name__)


class CRUDBooking:
    async def list_bookings(self, ctx: BookingContext, params: Mapping[str, Any]) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Filter, sort and paginate bookings from the materialized collection
        when it exists, otherwise through the live pipeline on the primary one.
        ``count`` is the size of this page, no total is computed.
        """
        query = build_list_query(params)
        if ctx.materialized:
            data = await ctx.store.list_materialized(query)
        else:
            data = await ctx.store.list_live(query)
        if query.flat:
            return data
        return {"page": query.page, "limit": query.limit, "count": len(data), "data": data}

    async def get_booking(self, ctx: BookingContext, booking_id: str) -> Dict[str, Any]:
        booking = await ctx.store.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError()
        return booking

    async def create_booking(self, ctx: BookingContext, payload: Mapping[str, Any]) -> Dict[str, Any]:
        doc = normalize_on_create(payload)
        try:
            await ctx.store.insert(doc)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate booking id {doc['id']}")
            raise ConflictError(key=e.key)
        if ctx.materialized:
            await self.refresh_one(ctx, doc["id"])
        return doc

    async def update_booking(self, ctx: BookingContext, booking_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Shared by PUT and PATCH: only mutable fields can change and both
        verbs apply them as a partial update.
        """
        ensure_no_immutable(payload)
        if not pick_mutable(payload):
            raise ValidationError("No valid fields to update")
        fields = normalize_for_patch(payload)

        try:
            result = await ctx.store.update_and_fetch(booking_id, fields)
        except DuplicateKeyError as e:
            raise ConflictError(key=e.key)

        booking = result.document
        if booking is None and result.matched:
            # the update landed but the store did not send the document back
            logger.warning(f"Update of booking {booking_id} matched without a document, re-reading it")
            booking = await ctx.store.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError()

        if ctx.materialized:
            await self.refresh_one(ctx, booking_id)
        return booking

    async def replace_booking(self, ctx: BookingContext, booking_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.update_booking(ctx, booking_id, payload)

    async def patch_booking(self, ctx: BookingContext, booking_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return await self.update_booking(ctx, booking_id, payload)

    async def delete_booking(self, ctx: BookingContext, booking_id: str) -> bool:
        deleted = await ctx.store.delete(booking_id)
        if ctx.materialized:
            try:
                await ctx.store.delete_materialized(booking_id)
            except Exception as e:
                logger.error(f"Failed to delete materialized booking {booking_id}: {e}", exc_info=True)
        return deleted

    async def refresh_one(self, ctx: BookingContext, booking_id: str) -> None:
        """
        Best effort. Failures are logged and the entry stays stale until the
        next refresh.
        """
        try:
            await ctx.store.refresh_one(booking_id)
        except Exception as e:
            logger.error(f"Failed to refresh materialized booking {booking_id}: {e}", exc_info=True)

    async def refresh_all(self, ctx: BookingContext, rebuild: bool = False) -> None:
        logger.info(f"Refreshing materialized bookings (rebuild={rebuild})")
        await ctx.store.refresh_all(rebuild=rebuild)


crud_booking = CRUDBooking()
