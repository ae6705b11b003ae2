"""Data models shared by the auth and booking layers."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import BookingStateError


class ConsultationMode(str, Enum):
    """Channel a consultation is delivered over."""

    CHAT = "chat"
    AUDIO = "audio"
    VIDEO = "video"
    IN_PERSON = "in-person"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_settled(self) -> bool:
        return self is not PaymentStatus.PENDING


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    CHALLENGED = "challenged"
    AUTHENTICATED = "authenticated"


class _ApiModel(BaseModel):
    """Base for models parsed from camelCase server payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class UserProfile(_ApiModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = ""
    display_name: str = Field(default="", alias="name")
    email: str = ""
    phone: str = ""


class SessionSnapshot(BaseModel):
    """The process-wide session: an opaque token plus the verified user."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: Optional[UserProfile] = None


class OTPChallenge(BaseModel):
    """A single send/verify round trip. Never persisted."""

    phone: str = Field(pattern=r"^\d{10}$")
    submitted_code: str = ""


class SignupProfile(BaseModel):
    name: str
    email: str
    phone: str
    password: str


class OTPResult(BaseModel):
    success: bool
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class AuthResult(BaseModel):
    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[UserProfile] = None
    error: Optional[str] = None


class AuthStatus(BaseModel):
    is_authenticated: bool
    user: Optional[dict[str, Any]] = None


class OTPDiagnosis(BaseModel):
    status: str
    suggestions: List[str] = Field(default_factory=list)


class PriceBreakdown(BaseModel):
    base_price: int
    duration_multiplier: float
    mode_multiplier: float


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int
    currency: str
    breakdown: PriceBreakdown


class ProfessionalSummary(_ApiModel):
    id: str
    name: str = ""
    expertise: str = ""
    avatar: Optional[str] = None


class UserSummary(_ApiModel):
    id: str
    name: str = ""
    email: str = ""


class BookingRequest(_ApiModel):
    professional_id: str = Field(alias="professionalId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    service: str = Field(min_length=1)
    consultation_mode: ConsultationMode = Field(alias="consultationMode")
    date_time: str = Field(alias="dateTime", min_length=1)
    duration_minutes: int = Field(alias="duration", gt=0)
    amount: int = Field(ge=0)
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BookingCreated(_ApiModel):
    booking_id: str = Field(alias="bookingId")
    payment_url: Optional[str] = Field(default=None, alias="paymentUrl")
    message: Optional[str] = None


class PaymentStatusResult(_ApiModel):
    booking_id: str = Field(alias="bookingId")
    status: PaymentStatus
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    message: Optional[str] = None


def check_payment_transition(
    booking_id: str,
    current: PaymentStatus,
    new_status: PaymentStatus,
    *,
    cancelled: bool,
) -> None:
    """Raise ``BookingStateError`` unless ``current -> new_status`` is allowed."""
    if new_status == current:
        return
    if cancelled:
        raise BookingStateError(
            "Payment status cannot change on a cancelled booking",
            code="booking_cancelled",
            details={"booking_id": booking_id},
        )
    if current.is_settled:
        raise BookingStateError(
            f"Payment already {current.value}",
            code="payment_settled",
            details={"booking_id": booking_id, "requested": new_status.value},
        )


class CancelResult(BaseModel):
    success: bool
    message: str


class Booking(_ApiModel):
    id: str
    professional_id: str = Field(alias="professionalId")
    user_id: str = Field(alias="userId")
    service: str
    consultation_mode: ConsultationMode = Field(alias="consultationMode")
    date_time: str = Field(alias="dateTime")
    duration_minutes: int = Field(alias="duration")
    amount: int
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING, alias="paymentStatus"
    )
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    professional: Optional[ProfessionalSummary] = None
    user: Optional[UserSummary] = None

    def with_payment_status(self, new_status: PaymentStatus) -> "Booking":
        """Return a copy with ``new_status`` applied, enforcing the payment lifecycle."""
        if new_status == self.payment_status:
            return self
        check_payment_transition(
            self.id,
            self.payment_status,
            new_status,
            cancelled=self.status is BookingStatus.CANCELLED,
        )
        return self.model_copy(update={"payment_status": new_status})

    def cancelled(self) -> "Booking":
        if self.status.is_terminal:
            raise BookingStateError(
                f"Booking is already {self.status.value}",
                code="booking_terminal",
                details={"booking_id": self.id},
            )
        return self.model_copy(update={"status": BookingStatus.CANCELLED})
