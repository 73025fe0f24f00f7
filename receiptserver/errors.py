from typing import Optional


class ParseFailure(ValueError):
    def __init__(self, message: str = "Failed to parse HTML template"):
        super().__init__(message)


class ExternalServiceFailure(RuntimeError):
    """A collaborator (email provider, image conversion) refused or failed.

    `details` keeps the provider's own message so it can be reported upward
    verbatim.
    """

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details or message
