from __future__ import annotations

from uuid import UUID

from app.economy.progress.rules import base_points_delta, base_xp_delta, resolve_outcome
from app.economy.progress.types import MatchOutcome
from app.game.duels.types import NO_ANSWER, DuelResult, RoundRecord, SideResult

OPTIONS_COUNT = 4
MAX_ROUND_DIFFICULTY = 10


def is_valid_choice(choice: object) -> bool:
    if isinstance(choice, bool) or not isinstance(choice, int):
        return False
    return choice == NO_ANSWER or 0 <= choice < OPTIONS_COUNT


def is_correct_choice(choice: int, correct_option: int) -> bool:
    return choice != NO_ANSWER and choice == correct_option


def live_round_difficulty(round_index: int) -> int:
    return min(max(0, round_index) // 2, MAX_ROUND_DIFFICULTY)


def tally_scores(rounds: list[RoundRecord], participant_ids: tuple[int, int]) -> dict[int, int]:
    scores = {participant_id: 0 for participant_id in participant_ids}
    for record in rounds:
        if not record.scored:
            continue
        for participant_id, answer in record.answers.items():
            if answer.is_correct and participant_id in scores:
                scores[participant_id] += 1
    return scores


def build_duel_result(
    *,
    session_id: UUID,
    subject: str,
    total_rounds: int,
    rounds: list[RoundRecord],
    participant_ids: tuple[int, int],
    aborted: bool = False,
    forfeited_by: int | None = None,
) -> DuelResult:
    scores = tally_scores(rounds, participant_ids)
    first_id, second_id = participant_ids

    if forfeited_by is not None:
        outcomes = {
            first_id: MatchOutcome.LOSS if forfeited_by == first_id else MatchOutcome.WIN,
            second_id: MatchOutcome.LOSS if forfeited_by == second_id else MatchOutcome.WIN,
        }
    else:
        outcomes = {
            first_id: resolve_outcome(scores[first_id], scores[second_id]),
            second_id: resolve_outcome(scores[second_id], scores[first_id]),
        }

    sides = tuple(
        SideResult(
            participant_id=participant_id,
            correct_count=scores[participant_id],
            outcome=outcomes[participant_id],
            points_delta=base_points_delta(
                correct_count=scores[participant_id],
                outcome=outcomes[participant_id],
            ),
            xp_delta=base_xp_delta(
                correct_count=scores[participant_id],
                outcome=outcomes[participant_id],
            ),
        )
        for participant_id in participant_ids
    )
    winner_id = next(
        (side.participant_id for side in sides if side.outcome == MatchOutcome.WIN),
        None,
    )
    return DuelResult(
        session_id=session_id,
        subject=subject,
        total_rounds=total_rounds,
        rounds_played=sum(1 for record in rounds if record.scored and not record.forfeited),
        scores=scores,
        winner_id=winner_id,
        is_draw=winner_id is None,
        sides=sides,  # type: ignore[arg-type]
        aborted=aborted,
        forfeited_by=forfeited_by,
    )
