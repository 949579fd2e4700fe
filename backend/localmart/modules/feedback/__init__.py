"""
Feedback Module - Order ratings and elite-shop flag.
"""

from localmart.modules.feedback.service import FeedbackService, RatingStats

__all__ = ["FeedbackService", "RatingStats"]
