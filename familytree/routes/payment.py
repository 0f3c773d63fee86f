"""
Recorded payments: each intent created here is tracked as a Payment row
whose status follows the provider's.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from familytree.auth import get_current_user
from familytree.config import Settings, get_settings
from familytree.db import DbClient
from familytree.dependencies import get_db_client, require_payment_gateway
from familytree.errors import ForbiddenError, NotFoundError, ValidationError
from familytree.payments import PaymentGateway, grant_entitlement
from familytree.records import PaymentRecord, UserRecord, new_id
from familytree.schemas import (
    CreatePaymentRequest,
    IntentResponse,
    PaymentResponse,
    PaymentVerifyResponse,
    UserResponse,
    VerifyIntentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["Payment"])

PAYMENT_METHODS = ("card", "netbanking")
FAILED_INTENT_STATUSES = ("requires_payment_method", "canceled")


def payment_status(intent_status: str) -> str:
    """Map a provider intent status onto the recorded payment status."""
    if intent_status == "succeeded":
        return "succeeded"
    if intent_status in FAILED_INTENT_STATUSES:
        return "failed"
    return "pending"


@router.post("/create-intent", response_model=IntentResponse)
def create_intent(
    payload: CreatePaymentRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    gateway: PaymentGateway = Depends(require_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    if not payload.amount or not payload.method:
        raise ValidationError("amount and method are required")
    if payload.method not in PAYMENT_METHODS:
        raise ValidationError("Unsupported payment method")
    currency = payload.currency or settings.default_currency

    intent = gateway.create_intent(
        payload.amount, currency, user.id, payment_method_types=[payload.method]
    )
    db.create_payment(
        PaymentRecord(
            id=new_id(),
            owner_id=user.id,
            amount=payload.amount,
            currency=currency,
            method=payload.method,
            provider_intent_id=intent.id,
        )
    )
    logger.info("Recorded pending payment %s for %s", intent.id, user.id)
    return IntentResponse(clientSecret=intent.client_secret, paymentIntentId=intent.id)


@router.post("/verify-intent", response_model=PaymentVerifyResponse)
def verify_intent(
    payload: VerifyIntentRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    gateway: PaymentGateway = Depends(require_payment_gateway),
):
    if not payload.paymentIntentId:
        raise ValidationError("paymentIntentId is required")
    intent = gateway.retrieve_intent(payload.paymentIntentId)
    if intent is None:
        raise NotFoundError("PaymentIntent not found")
    if not intent.owner_id or str(intent.owner_id) != str(user.id):
        raise ForbiddenError()

    status = payment_status(intent.status)
    payment = db.update_payment_status(user.id, intent.id, status)
    updated_user = None
    if intent.succeeded:
        updated_user = grant_entitlement(db, user, intent.succeeded, intent.owner_id)
    return PaymentVerifyResponse(
        payment=PaymentResponse(**payment.as_dict()) if payment else None,
        user=UserResponse(**updated_user.as_public_dict()) if updated_user else None,
    )


@router.get("/my", response_model=list[PaymentResponse])
def my_payments(
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return [PaymentResponse(**payment.as_dict()) for payment in db.list_payments(user.id)]
