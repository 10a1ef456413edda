# app/rewards/rules.py
from __future__ import annotations

from typing import Optional

from services.errors import DomainError

REWARD_EVENTS = ("click", "lead", "sale")
REWARD_TYPES = ("flat", "percentage")

# months; None means the reward applies for the customer's lifetime
RECURRING_MAX_DURATIONS = (0, 1, 3, 6, 12, 18, 24, 36, 48)

MAX_FLAT_AMOUNT_CENTS = 100_000
MAX_PERCENTAGE = 100


class InvalidReward(DomainError):
    status_code = 422


def validate_reward(
    *,
    event: str,
    type: str,
    amount: int,
    max_duration: Optional[int],
    max_amount: Optional[int],
) -> None:
    if event not in REWARD_EVENTS:
        raise InvalidReward("INVALID_EVENT", f"Reward event must be one of {', '.join(REWARD_EVENTS)}.")
    if type not in REWARD_TYPES:
        raise InvalidReward("INVALID_TYPE", f"Reward type must be one of {', '.join(REWARD_TYPES)}.")
    if event == "click" and type != "flat":
        raise InvalidReward("INVALID_TYPE", "Click rewards must be a flat amount.")

    if amount is None or amount < 0:
        raise InvalidReward("INVALID_AMOUNT", "Reward amount must be zero or more.")
    if type == "flat" and amount > MAX_FLAT_AMOUNT_CENTS:
        raise InvalidReward("INVALID_AMOUNT", "Flat rewards cannot exceed $1,000.")
    if type == "percentage" and amount > MAX_PERCENTAGE:
        raise InvalidReward("INVALID_AMOUNT", "Percentage rewards cannot exceed 100%.")

    if max_duration is not None and max_duration not in RECURRING_MAX_DURATIONS:
        raise InvalidReward(
            "INVALID_MAX_DURATION",
            "Max duration must be one of %s months, or empty for lifetime."
            % ", ".join(str(d) for d in RECURRING_MAX_DURATIONS),
        )

    if max_amount is not None and max_amount < 0:
        raise InvalidReward("INVALID_MAX_AMOUNT", "Max reward amount must be zero or more.")
