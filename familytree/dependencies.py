"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends

from familytree.config import get_settings
from familytree.db import DbClient, InMemoryDbClient, SqlDbClient
from familytree.errors import UpstreamUnavailableError
from familytree.family import FamilyService
from familytree.payments import (
    InMemoryPaymentGateway,
    PaymentGateway,
    StripePaymentGateway,
)
from familytree.reconciler import GraphReconciler
from familytree.storage import ImageHost, InMemoryImageHost, S3ImageHost

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_image_host: ImageHost | None = None
_payment_gateway: PaymentGateway | None = None
_payment_gateway_resolved = False


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_image_host() -> ImageHost:
    global _image_host
    if _image_host:
        return _image_host

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _image_host = InMemoryImageHost()
    else:
        _image_host = S3ImageHost(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.image_public_base_url or "",
        )
    return _image_host


def get_payment_gateway() -> Optional[PaymentGateway]:
    """
    Return the configured payment gateway, or None when payments are not
    configured for this deployment.
    """
    global _payment_gateway, _payment_gateway_resolved
    if _payment_gateway_resolved:
        return _payment_gateway

    settings = get_settings()
    if settings.stripe_secret_key:
        _payment_gateway = StripePaymentGateway(settings.stripe_secret_key)
    elif settings.use_in_memory_backends:
        _payment_gateway = InMemoryPaymentGateway()
    else:
        logger.warning("STRIPE_SECRET_KEY not configured; payments are disabled")
        _payment_gateway = None
    _payment_gateway_resolved = True
    return _payment_gateway


def get_reconciler(
    db: DbClient = Depends(get_db_client),
    images: ImageHost = Depends(get_image_host),
) -> GraphReconciler:
    return GraphReconciler(db, images)


def get_family_service(
    db: DbClient = Depends(get_db_client),
    images: ImageHost = Depends(get_image_host),
) -> FamilyService:
    return FamilyService(db, images)


def require_payment_gateway(
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
) -> PaymentGateway:
    if gateway is None:
        raise UpstreamUnavailableError("Payment service not configured")
    return gateway
