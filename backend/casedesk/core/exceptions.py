# FILE: backend/casedesk/core/exceptions.py
# Domain failures. Services turn these into ActionResult / AuthResult messages;
# none of them is fatal to the process.

class CasedeskError(Exception):
    """Base class for recoverable application failures."""

    default_message = "Operation failed"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthFailure(CasedeskError):
    default_message = "Authentication failed"


class StoreWriteFailure(CasedeskError):
    default_message = "Failed to save changes"


class StoreReadFailure(CasedeskError):
    default_message = "Failed to load data"


class InvalidFileSize(CasedeskError):
    default_message = "File is too large"

    def __init__(self, file_name: str, max_bytes: int):
        self.file_name = file_name
        self.max_bytes = max_bytes
        max_mb = max_bytes / (1024 * 1024)
        super().__init__(f"File {file_name} is too large. Maximum size is {max_mb:g}MB.")
