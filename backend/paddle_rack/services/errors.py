"""
Error taxonomy for the queue engine.

- Validation errors: rejected before any state mutation (422)
- Conflict errors: stale or duplicate requests, not retryable as-is (409)
- Not-found errors (404)
- Transient errors: store contention that outlived the retry budget (503)

Routes translate these into HTTPException; services never import FastAPI.
"""


class QueueEngineError(Exception):
    """Base exception for queue engine errors"""

    status_code = 400
    code = "QUEUE_ENGINE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"code": self.code, "message": self.message}


# ----------------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------------


class ValidationFailed(QueueEngineError):
    status_code = 422
    code = "VALIDATION_FAILED"


class TiedScore(ValidationFailed):
    code = "TIED_SCORE"


class InvalidScore(ValidationFailed):
    code = "INVALID_SCORE"


class InvalidTeamSize(ValidationFailed):
    code = "INVALID_TEAM_SIZE"


# ----------------------------------------------------------------------------
# Conflicts
# ----------------------------------------------------------------------------


class ConflictError(QueueEngineError):
    status_code = 409
    code = "CONFLICT"


class AlreadyInQueue(ConflictError):
    code = "ALREADY_IN_QUEUE"


class NotInQueue(ConflictError):
    code = "NOT_IN_QUEUE"


class CourtBusy(ConflictError):
    code = "COURT_BUSY"


class AlreadyEnded(ConflictError):
    code = "ALREADY_ENDED"


# ----------------------------------------------------------------------------
# Not found
# ----------------------------------------------------------------------------


class NotFoundError(QueueEngineError):
    status_code = 404
    code = "NOT_FOUND"


class QueueNotFound(NotFoundError):
    code = "QUEUE_NOT_FOUND"


class GameNotFound(NotFoundError):
    code = "GAME_NOT_FOUND"


class CourtNotFound(NotFoundError):
    code = "COURT_NOT_FOUND"


# ----------------------------------------------------------------------------
# Contention
# ----------------------------------------------------------------------------


class StaleWriteError(QueueEngineError):
    """A compare-and-swap lost the race. Internal: the transaction runner retries it."""

    status_code = 503
    code = "STALE_WRITE"


class TransientStoreError(QueueEngineError):
    status_code = 503
    code = "TRANSIENT_STORE_ERROR"
