"""
Payment gateway abstraction for Stripe and in-memory testing.

The only security-relevant rule in the payment path lives in
``grant_entitlement``: a caller is marked paid only when the gateway
reports success AND the charge's ``ownerId`` metadata is the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import stripe

from familytree.db import DbClient
from familytree.errors import ForbiddenError, GatewayError, ValidationError
from familytree.records import UserRecord

logger = logging.getLogger(__name__)

OWNER_METADATA_KEY = "ownerId"


@dataclass
class IntentResult:
    id: str
    status: str
    client_secret: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def owner_id(self) -> Optional[str]:
        return self.metadata.get(OWNER_METADATA_KEY)


@dataclass
class SessionResult:
    id: str
    payment_status: str
    url: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def owner_id(self) -> Optional[str]:
        return self.metadata.get(OWNER_METADATA_KEY)


class PaymentGateway(Protocol):
    """The narrow contract this service needs from a payment provider."""

    def create_intent(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        payment_method_types: Optional[list[str]] = None,
    ) -> IntentResult:
        ...

    def retrieve_intent(self, intent_id: str) -> Optional[IntentResult]:
        ...

    def create_session(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        success_url: str,
        cancel_url: str,
        product_name: str = "",
        product_description: str = "",
    ) -> SessionResult:
        ...

    def retrieve_session(self, session_id: str) -> Optional[SessionResult]:
        ...


def grant_entitlement(
    db: DbClient, caller: UserRecord, succeeded: bool, owner_id: Optional[str]
) -> UserRecord:
    """Flip the caller's paid flag after checking status and ownership."""
    if not succeeded:
        raise ValidationError("Payment not completed")
    if not owner_id or str(owner_id) != str(caller.id):
        logger.warning(
            "Rejected entitlement for %s: charge belongs to %s", caller.id, owner_id
        )
        raise ForbiddenError()
    updated = db.set_user_paid(caller.id, True)
    logger.info("Granted entitlement to user %s", caller.id)
    return updated or caller


@dataclass
class InMemoryPaymentGateway:
    """Test double. Intents and sessions start unpaid until marked."""

    intents: dict = field(default_factory=dict)
    sessions: dict = field(default_factory=dict)
    fail_calls: bool = False

    def _check(self) -> None:
        if self.fail_calls:
            raise GatewayError()

    def create_intent(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        payment_method_types: Optional[list[str]] = None,
    ) -> IntentResult:
        self._check()
        intent_id = f"pi_{uuid.uuid4().hex}"
        metadata = {OWNER_METADATA_KEY: owner_id}
        if payment_method_types:
            metadata["method"] = payment_method_types[0]
        intent = IntentResult(
            id=intent_id,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:8]}",
            metadata=metadata,
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> Optional[IntentResult]:
        self._check()
        return self.intents.get(intent_id)

    def mark_intent(self, intent_id: str, status: str = "succeeded") -> None:
        self.intents[intent_id].status = status

    def create_session(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        success_url: str,
        cancel_url: str,
        product_name: str = "",
        product_description: str = "",
    ) -> SessionResult:
        self._check()
        session_id = f"cs_{uuid.uuid4().hex}"
        session = SessionResult(
            id=session_id,
            payment_status="unpaid",
            url=f"https://checkout.example.test/{session_id}",
            metadata={OWNER_METADATA_KEY: owner_id},
        )
        self.sessions[session_id] = session
        return session

    def retrieve_session(self, session_id: str) -> Optional[SessionResult]:
        self._check()
        return self.sessions.get(session_id)

    def mark_session_paid(self, session_id: str) -> None:
        self.sessions[session_id].payment_status = "paid"


class StripePaymentGateway:
    """Stripe-backed gateway using per-request API keys."""

    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for StripePaymentGateway")
        self.secret_key = secret_key

    @staticmethod
    def _metadata(obj) -> dict:
        metadata = getattr(obj, "metadata", None) or {}
        to_dict = getattr(metadata, "to_dict", None)
        return dict(to_dict() if to_dict else metadata)

    def _to_intent(self, intent) -> IntentResult:
        return IntentResult(
            id=intent.id,
            status=intent.status,
            client_secret=getattr(intent, "client_secret", None),
            metadata=self._metadata(intent),
        )

    def _to_session(self, session) -> SessionResult:
        return SessionResult(
            id=session.id,
            payment_status=session.payment_status,
            url=getattr(session, "url", None),
            metadata=self._metadata(session),
        )

    def create_intent(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        payment_method_types: Optional[list[str]] = None,
    ) -> IntentResult:
        params = {
            "amount": amount,
            "currency": currency,
            "metadata": {OWNER_METADATA_KEY: owner_id},
        }
        if payment_method_types:
            params["payment_method_types"] = payment_method_types
            params["metadata"]["method"] = payment_method_types[0]
        else:
            params["automatic_payment_methods"] = {"enabled": True}
        try:
            intent = stripe.PaymentIntent.create(api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe create intent failed: %s (code=%s)",
                exc.user_message or str(exc),
                getattr(exc, "code", None),
            )
            raise GatewayError("Failed to create payment intent") from exc
        logger.info("Payment intent %s created for %s", intent.id, owner_id)
        return self._to_intent(intent)

    def retrieve_intent(self, intent_id: str) -> Optional[IntentResult]:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.secret_key)
        except stripe.InvalidRequestError as exc:
            if exc.http_status == 404:
                return None
            raise GatewayError("Failed to verify payment") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe retrieve intent %s failed: %s", intent_id, exc)
            raise GatewayError("Failed to verify payment") from exc
        return self._to_intent(intent)

    def create_session(
        self,
        amount: int,
        currency: str,
        owner_id: str,
        success_url: str,
        cancel_url: str,
        product_name: str = "",
        product_description: str = "",
    ) -> SessionResult:
        product_data = {"name": product_name or "Premium"}
        if product_description:
            product_data["description"] = product_description
        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": product_data,
                            "unit_amount": amount,
                        },
                        "quantity": 1,
                    }
                ],
                metadata={OWNER_METADATA_KEY: owner_id},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe create session failed: %s", exc)
            raise GatewayError("Failed to create checkout session") from exc
        return self._to_session(session)

    def retrieve_session(self, session_id: str) -> Optional[SessionResult]:
        try:
            session = stripe.checkout.Session.retrieve(
                session_id, api_key=self.secret_key
            )
        except stripe.InvalidRequestError as exc:
            if exc.http_status == 404:
                return None
            raise GatewayError("Failed to confirm payment") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe retrieve session %s failed: %s", session_id, exc)
            raise GatewayError("Failed to confirm payment") from exc
        return self._to_session(session)
