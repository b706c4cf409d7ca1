"""Experience ledger shared by visits, missions and moderation rewards."""

from __future__ import annotations

from app.models.user import EXPERT_EXP_THRESHOLD, User
from app.utils.logger import get_logger

logger = get_logger(__name__)

DISCOVERY_BONUS_EXP = 5
EXP_PER_APPROVED_REQUEST = 10
NEW_PLACE_REWARD_MULTIPLIER = 3


def award_experience(user: User, amount: int, *, reason: str) -> int:
    """Credit experience to ``user`` in memory and return the new balance.

    Persisting the user is left to the caller, which saves the aggregate
    once at the end of the request.
    """
    was_expert = bool(user.expert)
    balance = user.add_experience(amount)
    logger.info(
        "[EXP] +%s to user %s (%s) -> %s", amount, user.id, reason, balance
    )
    if user.expert and not was_expert:
        logger.info(
            "[EXP] User %s promoted to expert (threshold=%s)",
            user.id,
            EXPERT_EXP_THRESHOLD,
        )
    return balance


def moderation_reward(is_new_place: bool) -> int:
    if is_new_place:
        return NEW_PLACE_REWARD_MULTIPLIER * EXP_PER_APPROVED_REQUEST
    return EXP_PER_APPROVED_REQUEST


__all__ = [
    "DISCOVERY_BONUS_EXP",
    "EXP_PER_APPROVED_REQUEST",
    "NEW_PLACE_REWARD_MULTIPLIER",
    "award_experience",
    "moderation_reward",
]
