class DuelEngineError(Exception):
    pass


class GenerationUnavailableError(DuelEngineError):
    pass


class UnknownSubjectError(DuelEngineError):
    pass


class NotFoundError(DuelEngineError):
    pass


class MatchNotFoundError(NotFoundError):
    pass


class DuelSessionNotFoundError(NotFoundError):
    pass


class ChallengeNotFoundError(NotFoundError):
    pass


class ParticipantNotFoundError(NotFoundError):
    pass


class ExpiredError(DuelEngineError):
    pass


class MatchExpiredError(ExpiredError):
    pass


class ChallengeExpiredError(ExpiredError):
    pass


class ChallengeTargetOfflineError(DuelEngineError):
    pass


class SelfChallengeError(DuelEngineError):
    pass


class MatchAccessError(DuelEngineError):
    pass


class ParticipantBusyError(DuelEngineError):
    pass


class MatchRequestCancelledError(DuelEngineError):
    pass
