from app.db.models.async_match_rounds import AsyncMatchRound
from app.db.models.async_matches import AsyncMatch
from app.db.models.attempt_records import AttemptRecord
from app.db.models.match_settlements import MatchSettlement
from app.db.models.subject_mastery import SubjectMastery
from app.db.models.users import User

__all__ = [
    "AsyncMatch",
    "AsyncMatchRound",
    "AttemptRecord",
    "MatchSettlement",
    "SubjectMastery",
    "User",
]
