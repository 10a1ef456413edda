# app/rewards/service.py
from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Optional, Sequence

from db import get_conn
from app.programs import repository as programs_repo
from app.rewards import repository as rewards_repo
from app.rewards.rules import InvalidReward, validate_reward
from services.errors import Conflict, NotFound

logger = logging.getLogger("partnerpay.rewards")

Transaction = Callable[[], ContextManager[Any]]


def _require_program(conn, *, program_id: str, workspace_id: str) -> dict:
    program = programs_repo.get_program(conn, program_id=program_id, workspace_id=workspace_id)
    if not program:
        raise NotFound("PROGRAM_NOT_FOUND", "Program not found.")
    return program


def _check_partners(conn, *, program_id: str, partner_ids: Sequence[str]) -> None:
    unique_ids = set(partner_ids)
    found = rewards_repo.count_enrolled_partners(conn, program_id=program_id, partner_ids=sorted(unique_ids))
    if found != len(unique_ids):
        raise InvalidReward("INVALID_PARTNERS", "Some partners are not enrolled in this program.")


def list_rewards(*, program_id: str, workspace_id: str, transaction: Optional[Transaction] = None) -> list[dict]:
    transaction = transaction or get_conn
    with transaction() as conn:
        _require_program(conn, program_id=program_id, workspace_id=workspace_id)
        return rewards_repo.list_rewards(conn, program_id=program_id)


def create_reward(
    *,
    program_id: str,
    workspace_id: str,
    event: str,
    type: str,
    amount: int,
    max_duration: Optional[int] = None,
    max_amount: Optional[int] = None,
    partner_ids: Optional[Sequence[str]] = None,
    transaction: Optional[Transaction] = None,
) -> dict:
    validate_reward(event=event, type=type, amount=amount, max_duration=max_duration, max_amount=max_amount)
    partner_ids = list(partner_ids or [])
    transaction = transaction or get_conn

    with transaction() as conn:
        _require_program(conn, program_id=program_id, workspace_id=workspace_id)

        if partner_ids:
            _check_partners(conn, program_id=program_id, partner_ids=partner_ids)
        elif rewards_repo.program_wide_reward_exists(conn, program_id=program_id, event=event):
            raise Conflict(
                "PROGRAM_WIDE_REWARD_EXISTS",
                f"There is an existing {event} reward for all partners in this program.",
            )

        reward_id = rewards_repo.insert_reward(
            conn,
            program_id=program_id,
            event=event,
            type=type,
            amount=amount,
            max_duration=max_duration,
            max_amount=max_amount,
        )
        if partner_ids:
            rewards_repo.replace_reward_partners(conn, reward_id=reward_id, partner_ids=partner_ids)

        reward = rewards_repo.get_reward(conn, program_id=program_id, reward_id=reward_id)

    logger.info("reward created program=%s reward=%s event=%s partners=%s", program_id, reward_id, event, len(partner_ids))
    return reward


def update_reward(
    *,
    program_id: str,
    workspace_id: str,
    reward_id: str,
    type: str,
    amount: int,
    max_duration: Optional[int] = None,
    max_amount: Optional[int] = None,
    partner_ids: Optional[Sequence[str]] = None,
    transaction: Optional[Transaction] = None,
) -> dict:
    partner_ids = list(partner_ids or [])
    transaction = transaction or get_conn

    with transaction() as conn:
        _require_program(conn, program_id=program_id, workspace_id=workspace_id)
        existing = rewards_repo.get_reward(conn, program_id=program_id, reward_id=reward_id, for_update=True)
        if not existing:
            raise NotFound("REWARD_NOT_FOUND", "Reward not found.")

        validate_reward(
            event=existing["event"], type=type, amount=amount, max_duration=max_duration, max_amount=max_amount
        )

        was_program_wide = int(existing.get("partners_count") or 0) == 0
        if was_program_wide != (not partner_ids):
            raise InvalidReward("PARTNER_TYPE_IMMUTABLE", "Partner type cannot be changed for existing rewards.")

        if partner_ids:
            _check_partners(conn, program_id=program_id, partner_ids=partner_ids)

        rewards_repo.update_reward(
            conn,
            reward_id=reward_id,
            type=type,
            amount=amount,
            max_duration=max_duration,
            max_amount=max_amount,
        )
        if partner_ids:
            rewards_repo.replace_reward_partners(conn, reward_id=reward_id, partner_ids=partner_ids)

        reward = rewards_repo.get_reward(conn, program_id=program_id, reward_id=reward_id)

    logger.info("reward updated program=%s reward=%s", program_id, reward_id)
    return reward


def delete_reward(
    *,
    program_id: str,
    workspace_id: str,
    reward_id: str,
    transaction: Optional[Transaction] = None,
) -> dict:
    transaction = transaction or get_conn
    with transaction() as conn:
        program = _require_program(conn, program_id=program_id, workspace_id=workspace_id)
        existing = rewards_repo.get_reward(conn, program_id=program_id, reward_id=reward_id, for_update=True)
        if not existing:
            raise NotFound("REWARD_NOT_FOUND", "Reward not found.")
        if program.get("default_reward_id") == reward_id:
            raise Conflict("DEFAULT_REWARD_UNDELETABLE", "The program's default reward cannot be deleted.")

        rewards_repo.delete_reward(conn, reward_id=reward_id)

    logger.info("reward deleted program=%s reward=%s", program_id, reward_id)
    return {"ok": True, "id": reward_id}
