"""
Error taxonomy shared by the services and the HTTP layer.

Each class carries the status code and the user-facing message the API
returns for it. Messages never include store or gateway internals.
"""

from __future__ import annotations


class FamilyTreeError(Exception):
    status_code = 500
    default_detail = "Server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(FamilyTreeError):
    status_code = 400
    default_detail = "Invalid request"


class UnauthorizedError(FamilyTreeError):
    status_code = 401
    default_detail = "Unauthorized"


class PaymentRequiredError(FamilyTreeError):
    status_code = 402
    default_detail = "Payment required"


class ForbiddenError(FamilyTreeError):
    status_code = 403
    default_detail = "Forbidden"


class NotFoundError(FamilyTreeError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(FamilyTreeError):
    status_code = 409
    default_detail = "Already exists"


class PayloadTooLargeError(FamilyTreeError):
    status_code = 413
    default_detail = "File too large"


class UpstreamError(FamilyTreeError):
    """An external service was reachable in principle but the call failed."""

    status_code = 502
    default_detail = "Upstream service failed"


class ImageHostError(UpstreamError):
    default_detail = "Photo upload failed"


class GatewayError(UpstreamError):
    default_detail = "Payment service failed"


class UpstreamUnavailableError(FamilyTreeError):
    """An external service is not configured for this deployment."""

    status_code = 503
    default_detail = "Service not configured"


class DuplicateKeyError(Exception):
    """Raised by the entity store when a unique index would be violated."""
