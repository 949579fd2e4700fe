"""
Analytics Module - Sales roll-ups with AI-written insights.
"""

from localmart.modules.analytics.insights import GeminiClient, get_gemini_client
from localmart.modules.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "GeminiClient",
    "get_gemini_client",
]
