DUPLICATE_MAPPING_OTHER_ACCOUNT = "DUPLICATE_MAPPING_OTHER_ACCOUNT"
ALREADY_MAPPED_TO_DIFFERENT_DATA = "ALREADY_MAPPED_TO_DIFFERENT_DATA"


class SkillTrackerError(Exception):
    """Business-rule rejection that aborts the whole request."""

    status_code = 500

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_payload(self) -> dict[str, str]:
        payload = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


class MissingIdentityError(SkillTrackerError):
    status_code = 400

    def __init__(self, message: str = "gitadoraId is required"):
        super().__init__(message)


class InvalidIdentityError(SkillTrackerError):
    status_code = 400


class NotFoundError(SkillTrackerError):
    status_code = 404


class ConflictError(SkillTrackerError):
    status_code = 409


class StorageError(Exception):
    """A single attempt could not be inserted."""


class AggregationError(Exception):
    """A snapshot for one instrument could not be computed or written."""
