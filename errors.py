"""
Error taxonomy for quiz submission and history lookups.

The HTTP layer maps these to status codes; storage details never travel
inside a SubmissionFailedError message.
"""
from typing import Any, Optional


class QuizError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.details = details


class NotFoundError(QuizError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource.capitalize()} not found")
        self.resource = resource
        self.resource_id = resource_id


class SubmissionFailedError(QuizError):
    def __init__(self, message: str = "Failed to save quiz attempt"):
        super().__init__(message)


class SubmissionTimeoutError(SubmissionFailedError):
    status_code = 504

    def __init__(self, message: str = "Saving the quiz attempt timed out"):
        super().__init__(message)


class StoreTimeoutError(TimeoutError):
    """A unit of work ran past its deadline inside a store backend."""
