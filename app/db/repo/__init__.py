from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.db.repo.attempt_records_repo import AttemptRecordsRepo
from app.db.repo.match_settlements_repo import MatchSettlementsRepo
from app.db.repo.subject_mastery_repo import SubjectMasteryRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "AsyncMatchesRepo",
    "AttemptRecordsRepo",
    "MatchSettlementsRepo",
    "SubjectMasteryRepo",
    "UsersRepo",
]
