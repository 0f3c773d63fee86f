"""
HTTP routes for the family album API.
"""

from fastapi import APIRouter

from familytree.routes import auth, billing, family, family_tree, health, payment, photos

router = APIRouter()
router.include_router(health.router)
router.include_router(auth.router)
router.include_router(photos.router)
router.include_router(family.router)
router.include_router(family_tree.router)
router.include_router(billing.router)
router.include_router(payment.router)
