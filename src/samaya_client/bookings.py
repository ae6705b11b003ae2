"""Booking creation, payment status tracking and cancellation."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import BookingStateError, RemoteError, SamayaError, ValidationError, surface
from .gateway import RequestGateway
from .models import (
    Booking,
    BookingCreated,
    BookingRequest,
    BookingStatus,
    CancelResult,
    PaymentStatus,
    PaymentStatusResult,
    check_payment_transition,
)

logger = logging.getLogger(__name__)


def _payload(response: dict) -> Any:
    data = response.get("data")
    return data if data is not None else response


def _parse_booking(raw: Any) -> Booking:
    try:
        return Booking.model_validate(raw)
    except PydanticValidationError as exc:
        raise RemoteError(
            "Received a malformed booking from the server",
            code="malformed_booking",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


DEFAULT_TRACKER_MAX_ENTRIES = 1000


class PaymentTracker:
    """
    Remembers the payment status observed for recently seen bookings.

    Keeps the client-side view monotonic: once a payment is settled it is not
    reported as pending again, and a cancelled booking's payment status is
    frozen. Only the ``max_entries`` most recently touched bookings are kept.
    """

    def __init__(self, max_entries: int = DEFAULT_TRACKER_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        # booking_id -> (last payment status, cancelled)
        self._entries: OrderedDict[str, tuple[Optional[PaymentStatus], bool]] = OrderedDict()

    def _remember(
        self, booking_id: str, status: Optional[PaymentStatus], cancelled: bool
    ) -> None:
        self._entries[booking_id] = (status, cancelled)
        self._entries.move_to_end(booking_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def is_cancelled(self, booking_id: str) -> bool:
        entry = self._entries.get(booking_id)
        return bool(entry and entry[1])

    def mark_cancelled(self, booking_id: str) -> None:
        status, _ = self._entries.get(booking_id, (None, False))
        self._remember(booking_id, status, True)

    def observe(self, booking_id: str, status: PaymentStatus) -> PaymentStatus:
        previous, cancelled = self._entries.get(booking_id, (None, False))
        if previous is not None:
            try:
                check_payment_transition(booking_id, previous, status, cancelled=cancelled)
            except BookingStateError as exc:
                logger.warning(
                    "payment_status_regression_ignored booking_id=%s previous=%s reported=%s reason=%s",
                    booking_id,
                    previous.value,
                    status.value,
                    exc.code,
                )
                return previous
        self._remember(booking_id, status, cancelled)
        return status

    def observe_booking(self, booking: Booking) -> Booking:
        if booking.status is BookingStatus.CANCELLED:
            self.mark_cancelled(booking.id)
        effective = self.observe(booking.id, booking.payment_status)
        if effective != booking.payment_status:
            return booking.model_copy(update={"payment_status": effective})
        return booking


class BookingOrchestrator:
    """Acts on bookings for the authenticated user through the request gateway."""

    def __init__(
        self,
        gateway: RequestGateway,
        tracker: PaymentTracker | None = None,
    ) -> None:
        self.gateway = gateway
        self.tracker = tracker or PaymentTracker()

    async def create_booking(
        self, request: BookingRequest | Mapping[str, Any]
    ) -> BookingCreated:
        if not isinstance(request, BookingRequest):
            try:
                request = BookingRequest.model_validate(request)
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Booking request is incomplete or invalid",
                    code="invalid_booking_request",
                    details={"errors": exc.errors(include_url=False)},
                ) from exc

        try:
            response = await self.gateway.execute("bookings", "POST", request.to_payload())
        except SamayaError as exc:
            raise surface(exc, "Failed to create booking") from exc

        if response.get("success") is False:
            message = response.get("message") or "Booking could not be created"
            raise RemoteError(f"Failed to create booking: {message}", code="booking_rejected")

        data = _payload(response)
        merged = {**response, **data} if isinstance(data, dict) else response
        if not merged.get("bookingId") and merged.get("id"):
            merged = {**merged, "bookingId": merged["id"]}
        try:
            created = BookingCreated.model_validate(merged)
        except PydanticValidationError as exc:
            raise RemoteError(
                "Booking was created but no booking id was returned",
                code="malformed_booking",
            ) from exc

        self.tracker.observe(created.booking_id, PaymentStatus.PENDING)
        logger.info(
            "booking_created booking_id=%s mode=%s amount=%s",
            created.booking_id,
            request.consultation_mode.value,
            request.amount,
        )
        return created

    async def get_payment_status(self, booking_id: str) -> PaymentStatusResult:
        try:
            response = await self.gateway.execute(
                "payment_status", path_params={"booking_id": booking_id}
            )
        except SamayaError as exc:
            raise surface(exc, "Failed to check payment status") from exc

        data = _payload(response)
        raw_status = None
        if isinstance(data, dict):
            raw_status = data.get("status") or data.get("paymentStatus")
        try:
            reported = PaymentStatus(raw_status)
        except ValueError as exc:
            raise RemoteError(
                f"Unknown payment status: {raw_status}",
                code="malformed_payment_status",
            ) from exc

        effective = self.tracker.observe(booking_id, reported)
        return PaymentStatusResult(
            booking_id=booking_id,
            status=effective,
            transaction_id=data.get("transactionId"),
            message=data.get("message") or response.get("message"),
        )

    async def poll_payment_status(
        self,
        booking_id: str,
        *,
        interval: float = 2.0,
        max_attempts: int = 30,
    ) -> PaymentStatusResult:
        """Poll until the payment leaves ``pending`` or attempts run out."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        result = await self.get_payment_status(booking_id)
        attempts = 1
        while not result.status.is_settled and attempts < max_attempts:
            await asyncio.sleep(interval)
            result = await self.get_payment_status(booking_id)
            attempts += 1
        return result

    async def list_bookings(
        self,
        *,
        user_id: str | None = None,
        professional_id: str | None = None,
    ) -> list[Booking]:
        """List bookings for one user or one professional, in server order."""
        if bool(user_id) == bool(professional_id):
            raise ValidationError(
                "Provide exactly one of user_id or professional_id",
                code="invalid_booking_filter",
            )
        params = {"userId": user_id} if user_id else {"professionalId": professional_id}
        try:
            response = await self.gateway.execute("bookings", params=params)
        except SamayaError as exc:
            raise surface(exc, "Failed to load bookings") from exc

        data = _payload(response)
        if isinstance(data, dict):
            data = data.get("bookings", [])
        if not isinstance(data, list):
            raise RemoteError("Received a malformed booking list", code="malformed_booking")
        return [self.tracker.observe_booking(_parse_booking(item)) for item in data]

    async def get_booking_details(self, booking_id: str) -> Booking:
        try:
            response = await self.gateway.execute(
                "booking_detail", path_params={"booking_id": booking_id}
            )
        except SamayaError as exc:
            raise surface(exc, "Failed to load booking") from exc
        return self.tracker.observe_booking(_parse_booking(_payload(response)))

    async def cancel_booking(self, booking_id: str) -> CancelResult:
        """
        Cancel a booking that is not yet in a terminal state.

        Already-cancelled or completed bookings are reported as a failed no-op
        and no cancel request is sent.
        """
        if self.tracker.is_cancelled(booking_id):
            return CancelResult(success=False, message="Booking is already cancelled")

        booking = await self.get_booking_details(booking_id)
        try:
            cancelled = booking.cancelled()
        except BookingStateError as exc:
            logger.info(
                "booking_cancel_rejected booking_id=%s status=%s",
                booking_id,
                booking.status.value,
            )
            return CancelResult(success=False, message=exc.message)

        try:
            response = await self.gateway.execute(
                "booking_cancel", "DELETE", path_params={"booking_id": booking_id}
            )
        except SamayaError as exc:
            raise surface(exc, "Failed to cancel booking") from exc

        success = response.get("success", True) is not False
        if success:
            self.tracker.observe_booking(cancelled)
            logger.info("booking_cancelled booking_id=%s", booking_id)
        return CancelResult(
            success=success,
            message=response.get("message")
            or ("Booking cancelled successfully" if success else "Booking could not be cancelled"),
        )
