"""
Analytics API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.security import RequestContext, require_shopkeeper
from localmart.modules.analytics.insights import GeminiClient, get_gemini_client
from localmart.modules.analytics.service import AnalyticsService

router = APIRouter()


@router.post("")
async def generate_analytics(
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
    ai: GeminiClient = Depends(get_gemini_client),
) -> dict[str, Any]:
    """
    Build the analytics report for the current shopkeeper's shop.

    AI-written sections fall back to placeholder text when the text
    service is unavailable; the numeric report is always returned.
    """
    analytics = AnalyticsService(db, ai)
    return await analytics.build_report(ctx)
