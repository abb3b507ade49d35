class ProgressError(Exception):
    """Base class for every failure the progression engine reports to callers."""

    status_code = 400
    code = "progress_error"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class EmptyCourseError(ProgressError):
    """Nothing to enrol into: no courses, sections or chapters."""
    status_code = 422
    code = "empty_course"


class SequenceViolationError(ProgressError):
    """Content requested out of order."""
    status_code = 409
    code = "sequence_violation"


class CadenceNotElapsedError(ProgressError):
    """Weekly unlock cooldown has not elapsed yet."""
    status_code = 425
    code = "cadence_not_elapsed"


class AlreadyUnlockedError(ProgressError):
    status_code = 409
    code = "already_unlocked"


class NotFoundError(ProgressError):
    status_code = 404
    code = "not_found"


class EnrolmentPolicyError(ProgressError):
    status_code = 403
    code = "enrolment_policy"


class PersistenceError(ProgressError):
    status_code = 500
    code = "persistence_error"
