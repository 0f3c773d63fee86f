"""
Stripe-backed upgrade routes: payment intents and hosted checkout.

Every confirmation path ends in ``grant_entitlement``, which only flips the
paid flag when the provider reports success for a charge made by the
caller.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from familytree.auth import get_current_user
from familytree.config import Settings, get_settings
from familytree.db import DbClient
from familytree.dependencies import get_db_client, require_payment_gateway
from familytree.errors import NotFoundError, ValidationError
from familytree.payments import PaymentGateway, grant_entitlement
from familytree.records import UserRecord
from familytree.schemas import (
    CheckoutSessionResponse,
    ConfirmCheckoutRequest,
    IntentRequest,
    IntentResponse,
    PublicKeyResponse,
    UserResponse,
    VerifyIntentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def _confirm_session(
    session_id: Optional[str],
    user: UserRecord,
    db: DbClient,
    gateway: PaymentGateway,
) -> UserResponse:
    if not session_id:
        raise ValidationError("sessionId required")
    session = gateway.retrieve_session(session_id)
    if session is None:
        raise NotFoundError("Session not found")
    updated = grant_entitlement(db, user, session.paid, session.owner_id)
    return UserResponse(**updated.as_public_dict())


@router.get("/public-key", response_model=PublicKeyResponse)
def public_key(settings: Settings = Depends(get_settings)):
    return PublicKeyResponse(publishableKey=settings.stripe_publishable_key or None)


@router.post("/create-payment-intent", response_model=IntentResponse)
def create_payment_intent(
    payload: Optional[IntentRequest] = None,
    user: UserRecord = Depends(get_current_user),
    gateway: PaymentGateway = Depends(require_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    payload = payload or IntentRequest()
    amount = payload.amount or settings.default_amount
    currency = payload.currency or settings.default_currency
    intent = gateway.create_intent(amount, currency, user.id)
    logger.info("Created payment intent %s for %s", intent.id, user.id)
    return IntentResponse(clientSecret=intent.client_secret, paymentIntentId=intent.id)


@router.post("/verify-intent", response_model=UserResponse)
def verify_intent(
    payload: VerifyIntentRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    gateway: PaymentGateway = Depends(require_payment_gateway),
):
    if not payload.paymentIntentId:
        raise ValidationError("paymentIntentId required")
    intent = gateway.retrieve_intent(payload.paymentIntentId)
    if intent is None:
        raise NotFoundError("Payment intent not found")
    updated = grant_entitlement(db, user, intent.succeeded, intent.owner_id)
    return UserResponse(**updated.as_public_dict())


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    payload: Optional[IntentRequest] = None,
    user: UserRecord = Depends(get_current_user),
    gateway: PaymentGateway = Depends(require_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    payload = payload or IntentRequest()
    frontend_url = settings.frontend_url.rstrip("/")
    session = gateway.create_session(
        amount=payload.amount or settings.default_amount,
        currency=payload.currency or settings.default_currency,
        owner_id=user.id,
        success_url=(
            f"{frontend_url}/dashboard?payment=success"
            "&session_id={CHECKOUT_SESSION_ID}"
        ),
        cancel_url=f"{frontend_url}/upgrade?canceled=1",
        product_name=settings.product_name,
        product_description=settings.product_description,
    )
    logger.info("Created checkout session %s for %s", session.id, user.id)
    return CheckoutSessionResponse(url=session.url)


@router.get("/confirm", response_model=UserResponse)
def confirm(
    session_id: Optional[str] = Query(default=None),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    gateway: PaymentGateway = Depends(require_payment_gateway),
):
    return _confirm_session(session_id, user, db, gateway)


@router.post("/confirm-checkout", response_model=UserResponse)
def confirm_checkout(
    payload: ConfirmCheckoutRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    gateway: PaymentGateway = Depends(require_payment_gateway),
):
    return _confirm_session(payload.sessionId, user, db, gateway)
