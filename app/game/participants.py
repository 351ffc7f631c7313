from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.db.models.users import User
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.game.errors import ParticipantNotFoundError


@dataclass(frozen=True, slots=True)
class ParticipantProfile:
    participant_id: int
    username: str
    display_name: str | None = None
    level: int = 1
    points: int = 0
    current_streak: int = 0
    loss_streak: int = 0
    is_bot: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.username

    def to_payload(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "username": self.username,
            "display_name": self.label,
            "level": self.level,
            "points": self.points,
        }


def profile_from_user(user: User) -> ParticipantProfile:
    return ParticipantProfile(
        participant_id=int(user.id),
        username=user.username,
        display_name=user.display_name,
        level=int(user.level),
        points=int(user.points),
        current_streak=int(user.current_streak),
        loss_streak=int(user.loss_streak),
    )


async def load_participant_profile(participant_id: int) -> ParticipantProfile:
    async with SessionLocal.begin() as session:
        user = await UsersRepo.get_by_id(session, participant_id)
        if user is None or user.status != "ACTIVE":
            raise ParticipantNotFoundError(participant_id)
        return profile_from_user(user)
