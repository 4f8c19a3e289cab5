"""
Error taxonomy for the URL shortener.

Service errors carry the HTTP status and label the API layer responds with.
Storage errors stay inside the service layer and are translated there.
"""


class URLServiceError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code: int = 400
    error: str = "Bad Request"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidURLError(URLServiceError):
    def __init__(self, message: str = "Invalid URL format"):
        super().__init__(message)


class InvalidValidityError(URLServiceError):
    def __init__(self, message: str = "Validity must be between 1 and 525600 minutes"):
        super().__init__(message)


class InvalidShortcodeError(URLServiceError):
    def __init__(
        self,
        message: str = "Shortcode must be alphanumeric and between 1-20 characters"
    ):
        super().__init__(message)


class ShortcodeTakenError(URLServiceError):
    def __init__(
        self,
        message: str = "Shortcode already exists. Please choose a different one."
    ):
        super().__init__(message)


class GenerationExhaustedError(URLServiceError):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str = "Unable to generate unique shortcode"):
        super().__init__(message)


class ShortUrlNotFoundError(URLServiceError):
    status_code = 404
    error = "Not Found"

    def __init__(self, message: str = "Short URL not found"):
        super().__init__(message)


class ShortUrlExpiredError(URLServiceError):
    status_code = 410
    error = "Gone"

    def __init__(self, message: str = "Short URL has expired"):
        super().__init__(message)


class StorageError(Exception):
    """Raised by storage strategies"""


class DuplicateShortcodeError(StorageError):
    """The shortcode is already stored (compare-and-insert lost)"""

    def __init__(self, shortcode: str):
        super().__init__(f"Shortcode already stored: {shortcode}")
        self.shortcode = shortcode
