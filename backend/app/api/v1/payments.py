from datetime import datetime
import logging
import time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_current_identity, get_db, get_payment_gateway
from app.api.schemas import CamelModel, RegistrationOut, dump
from app.core.identity import Identity
from app.core.settings import settings
from app.models.event import Event, EventRegistration, EventTicket
from app.services.payments import (
    PaymentGateway,
    event_receipt,
    fallback_order,
    format_amount,
    is_gateway_unavailable,
    payment_status_description,
    tournament_receipt,
)
from app.services.reconciliation import (
    ALREADY_VERIFIED,
    EMERGENCY,
    REPLAYED,
    reconcile_payment,
)
from app.services.validation import is_email

router = APIRouter(prefix="/payment")
logger = logging.getLogger(__name__)


class CreateOrderIn(CamelModel):
    amount: int = Field(gt=0)
    tournament_id: str = Field(min_length=1)
    team_name: str = Field(min_length=1)
    currency: str = "INR"


class VerifyPaymentIn(CamelModel):
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None
    registration_id: str | None = None
    test_mode: bool = False


class CreateEventOrderIn(CamelModel):
    amount: int = Field(gt=0)
    event_id: str = Field(min_length=1)
    ticket_type: str = Field(min_length=1)
    attendee_name: str = Field(min_length=1)
    currency: str = "INR"


class AttendeeIn(CamelModel):
    name: str = Field(min_length=1)
    email: str
    phone: str = Field(min_length=1)
    ticket_type: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v: str) -> str:
        if not is_email(v):
            raise ValueError("Valid email is required")
        return v


class VerifyEventPaymentIn(CamelModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    event_id: str = Field(min_length=1)
    registration_data: AttendeeIn


class EventRegistrationOut(CamelModel):
    id: str
    event_id: str
    user_id: str
    name: str | None
    email: str | None
    phone: str | None
    ticket_type: str | None
    payment_status: str
    payment_id: str | None
    created_at: datetime


class EventTicketOut(CamelModel):
    id: str
    registration_id: str
    event_id: str
    ticket_type: str | None
    ticket_number: str
    status: str
    payment_id: str | None
    issued_at: datetime


def _require_captured(gateway: PaymentGateway, payment_id: str) -> dict:
    result = gateway.fetch_payment(payment_id)
    if not result.success or not result.payment:
        raise HTTPException(
            status_code=400, detail={"error": "Payment verification failed", "details": result.error}
        )
    payment = result.payment
    status = payment.get("status")
    if status != "captured":
        logger.info("Payment %s not captured: %s", payment_id, status)
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Payment not completed",
                "status": status,
                "description": payment_status_description(status or ""),
            },
        )
    return payment


@router.get("/create-order")
def gateway_config(gateway: PaymentGateway = Depends(get_payment_gateway)):
    return {
        "configured": gateway.configured,
        "key_id": gateway.public_key_id or gateway.key_id,
        "mock": not gateway.configured,
    }


@router.post("/create-order")
def create_order(
    payload: CreateOrderIn,
    identity: Identity = Depends(get_current_identity),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    logger.info(
        "Creating order: amount=%s (%s %s) tournament=%s team=%s",
        payload.amount,
        format_amount(payload.amount),
        payload.currency,
        payload.tournament_id,
        payload.team_name,
    )
    receipt = tournament_receipt(payload.tournament_id)
    notes = {
        "tournamentId": payload.tournament_id,
        "teamName": payload.team_name,
        "userId": identity.user_id,
        "type": "tournament_registration",
    }

    result = gateway.create_order(amount=payload.amount, currency=payload.currency, receipt=receipt, notes=notes)

    if not result.success or not result.order:
        if is_gateway_unavailable(result.error):
            logger.warning("Razorpay unavailable (%s), issuing fallback order for %s", result.error, receipt)
            return {
                "success": True,
                "order": fallback_order(
                    amount=payload.amount,
                    currency=payload.currency,
                    receipt=receipt,
                    notes=notes,
                    key_id=gateway.key_id,
                ),
                "razorpay_key": gateway.public_key_id,
                "fallback": True,
                "message": "Payment gateway temporarily unavailable. Your registration is confirmed and you can pay later.",
            }

        if "credentials" in (result.error or ""):
            raise HTTPException(
                status_code=500,
                detail={
                    "error": "Payment system configuration error",
                    "details": "Razorpay is not properly configured. Please contact the administrator.",
                    "suggestion": "Please try registering again later or contact support.",
                },
            )

        raise HTTPException(
            status_code=500,
            detail={
                "error": "Failed to create payment order",
                "details": result.error,
                "suggestion": "Please try again in a few moments.",
            },
        )

    order = result.order
    return {
        "success": True,
        "order": {
            "id": order["id"],
            "amount": order["amount"],
            "amountInRupees": format_amount(int(order["amount"])),
            "currency": order["currency"],
            "receipt": order.get("receipt"),
        },
        "key_id": gateway.public_key_id or "rzp_test_mock",
        "isMock": result.is_mock,
    }


@router.post("/verify")
def verify_payment(
    payload: VerifyPaymentIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    test_mode = payload.test_mode
    payment_id = payload.razorpay_payment_id
    if test_mode and not gateway.test_mode_allowed:
        raise HTTPException(status_code=400, detail="Test mode is not available with live payment keys")
    if test_mode and not payment_id:
        payment_id = f"pp_{int(time.time() * 1000)}"
    if not payment_id:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid request data", "details": "razorpay_payment_id is required"},
        )

    logger.info(
        "Verifying payment %s order=%s registration=%s test_mode=%s user=%s",
        payment_id,
        payload.razorpay_order_id,
        payload.registration_id,
        test_mode,
        identity.user_id,
    )

    if not test_mode:
        if not payload.razorpay_order_id or not payload.razorpay_signature:
            raise HTTPException(
                status_code=400,
                detail={"error": "Invalid request data", "details": "Order ID and signature are required"},
            )
        if not gateway.verify_signature(payload.razorpay_order_id, payment_id, payload.razorpay_signature):
            raise HTTPException(status_code=400, detail="Invalid payment signature")
        _require_captured(gateway, payment_id)

    outcome = reconcile_payment(
        db,
        identity,
        payment_id=payment_id,
        order_id=payload.razorpay_order_id,
        registration_id=payload.registration_id,
        retry_delay=settings.REGISTRATION_RETRY_DELAY_SECONDS,
    )
    registration = dump(RegistrationOut.model_validate(outcome.registration))

    if outcome.outcome == ALREADY_VERIFIED:
        return {"success": True, "message": "Payment already verified", "registration": registration}
    if outcome.outcome == REPLAYED:
        return {"success": True, "message": "Payment already processed successfully", "registration": registration}
    if outcome.outcome == EMERGENCY:
        return {
            "success": True,
            "message": "Payment verified and emergency registration created",
            "registration": registration,
            "warning": "Registration created without tournament link - please contact support",
        }

    message = (
        "Test payment verified and registration confirmed"
        if test_mode
        else "Payment verified and registration confirmed"
    )
    return {"success": True, "message": message, "registration": registration, "testMode": test_mode}


@router.post("/events/create-order")
def create_event_order(
    payload: CreateEventOrderIn,
    identity: Identity = Depends(get_current_identity),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    result = gateway.create_order(
        amount=payload.amount,
        currency=payload.currency,
        receipt=event_receipt(payload.event_id),
        notes={
            "eventId": payload.event_id,
            "ticketType": payload.ticket_type,
            "attendeeName": payload.attendee_name,
            "userId": identity.user_id,
            "type": "event_registration",
        },
    )
    if not result.success or not result.order:
        raise HTTPException(status_code=500, detail={"error": "Failed to create payment order", "details": result.error})

    order = result.order
    return {
        "success": True,
        "order": {
            "id": order["id"],
            "amount": order["amount"],
            "currency": order["currency"],
            "receipt": order.get("receipt"),
        },
        "key_id": gateway.public_key_id,
    }


@router.post("/events/verify")
def verify_event_payment(
    payload: VerifyEventPaymentIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    if not gateway.verify_signature(
        payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
    ):
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    payment = _require_captured(gateway, payload.razorpay_payment_id)
    attendee = payload.registration_data

    if db.get(Event, payload.event_id) is None:
        logger.error("Payment %s captured for unknown event %s", payload.razorpay_payment_id, payload.event_id)
        raise HTTPException(
            status_code=404,
            detail={"error": "Event not found", "paymentId": payload.razorpay_payment_id},
        )

    try:
        reg = EventRegistration(
            event_id=payload.event_id,
            user_id=identity.user_id,
            name=attendee.name,
            email=attendee.email,
            phone=attendee.phone,
            ticket_type=attendee.ticket_type,
            payment_status="paid",
            payment_id=payload.razorpay_payment_id,
        )
        db.add(reg)
        db.flush()
        ticket = EventTicket(
            registration_id=reg.id,
            event_id=payload.event_id,
            ticket_type=attendee.ticket_type,
            ticket_number=f"EPIC-{int(time.time() * 1000)}",
            status="confirmed",
            payment_id=payload.razorpay_payment_id,
        )
        db.add(ticket)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Payment %s captured but event registration failed", payload.razorpay_payment_id)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Payment successful but registration failed. Please contact support.",
                "paymentId": payload.razorpay_payment_id,
            },
        )
    db.refresh(reg)
    db.refresh(ticket)
    logger.info("Event ticket %s issued for payment %s", ticket.ticket_number, payload.razorpay_payment_id)

    return {
        "success": True,
        "message": "Event registration and payment completed successfully",
        "registration": dump(EventRegistrationOut.model_validate(reg)),
        "ticket": dump(EventTicketOut.model_validate(ticket)),
        "payment": {
            "id": payment.get("id"),
            "amount": payment.get("amount"),
            "currency": payment.get("currency"),
            "status": payment.get("status"),
            "created_at": payment.get("created_at"),
        },
    }
