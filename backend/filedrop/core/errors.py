"""Error taxonomy shared by services and routes.

Every error carries the HTTP status it maps to and a message that is safe to
show to the person on the other end of the request.
"""


class FileDropError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(FileDropError):
    status_code = 404
    default_message = "Not found"


class LinkUnavailableError(FileDropError):
    status_code = 410
    default_message = "Upload link has expired or is inactive"


class QuotaExceededError(FileDropError):
    status_code = 413
    default_message = "File exceeds the remaining quota"


class ValidationError(FileDropError):
    status_code = 400
    default_message = "Invalid form data"


class StorageError(FileDropError):
    status_code = 500
    default_message = "Failed to save uploaded file"


class PersistenceError(FileDropError):
    status_code = 500
    default_message = "Database error"


class AuthRequiredError(FileDropError):
    # sent as a See Other redirect to /login by the app exception handler
    status_code = 303
    default_message = "Login required"
