class CrmError(Exception):
    pass


class ConfigError(CrmError):
    """Startup-time misconfiguration; the process must not serve requests."""


class InvalidTokenError(CrmError, ValueError):
    pass


class TokenExpiredError(InvalidTokenError):
    pass


class StorageError(CrmError):
    """A storage operation could not complete; its transaction was rolled back."""


class ConflictError(StorageError):
    pass


class DeliveryError(CrmError):
    """The notifier could not deliver a message."""


class MeetingNotFoundError(CrmError, LookupError):
    def __init__(self, meeting_id: int) -> None:
        super().__init__(f"Meeting not found with id: {meeting_id}")
        self.meeting_id = meeting_id
