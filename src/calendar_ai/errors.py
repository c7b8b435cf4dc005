from __future__ import annotations


class CalendarAIError(Exception):
    """Base error. Carries the HTTP status and the message shown to the user."""

    status_code: int = 500
    message: str = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class NotAuthenticated(CalendarAIError):
    status_code = 401
    message = "Not authenticated"


class RefreshTokenError(CalendarAIError):
    """Session token refresh failed; the user has to sign in again."""

    status_code = 401
    message = "Your Google session expired. Please sign in again."


class ProviderUnavailable(CalendarAIError):
    status_code = 500
    message = "The language model provider is not available"


class EmptyResponse(CalendarAIError):
    status_code = 500
    message = "The language model returned an empty response"


class ExtractionParseError(CalendarAIError):
    status_code = 500
    message = "Failed to parse extracted tasks"


class PerTaskValidationError(CalendarAIError):
    """A single extracted task failed validation. Absorbed and counted, never surfaced."""

    status_code = 422
    message = "Extracted task failed validation"


class RemoteCalendarError(CalendarAIError):
    status_code = 502
    message = "Google Calendar request failed"


class InvalidTimeFormat(CalendarAIError):
    status_code = 400
    message = "Time must be in HH:MM format"


class InvalidDateInput(CalendarAIError):
    status_code = 400
    message = "Invalid date"


class EmptyInput(CalendarAIError):
    status_code = 400
    message = "Please describe at least one task"


class TaskNotFound(CalendarAIError):
    status_code = 404
    message = "Task not found"


class DragInProgress(CalendarAIError):
    status_code = 409
    message = "Another task is already being dragged"
