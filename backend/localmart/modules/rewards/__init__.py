"""
Rewards Module - Loyalty point redemption.
"""

from localmart.modules.rewards.service import RewardService

__all__ = ["RewardService"]
