# FILE: cbt_engine/routes/health.py
"""
Health check endpoint
"""
import logging
from fastapi import APIRouter

from cbt_engine import __version__
from cbt_engine.config import get_settings
from cbt_engine.services.ordering import ORDERING_ALGORITHM_VERSION

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()


@router.get("")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.environment,
        "ordering_algorithm": ORDERING_ALGORITHM_VERSION
    }
