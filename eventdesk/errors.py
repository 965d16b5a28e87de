"""Error taxonomy shared by the controllers and the HTTP layer."""

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class EventDeskError(Exception):
    """Base class for errors reported to the caller."""

    status_code = 500
    public_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str | None = None,
        field_errors: dict[str, str] | None = None,
        error_code: str | None = None,
    ):
        self.message = message or self.public_message
        self.field_errors = field_errors or {}
        self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {'success': False, 'error': self.message}
        if self.field_errors:
            payload['fields'] = self.field_errors
        if self.error_code:
            payload['errorCode'] = self.error_code
        return payload


class ValidationError(EventDeskError):
    status_code = 400
    public_message = "Invalid request."

    @classmethod
    def for_fields(cls, field_errors: dict[str, str]) -> "ValidationError":
        # Report the first field message as the headline
        first = next(iter(field_errors.values()), cls.public_message)
        return cls(first, field_errors=field_errors)


class PaymentFailedError(EventDeskError):
    """The gateway declined, cancelled or failed the payment."""

    status_code = 400
    public_message = "Payment was not completed."


class AuthRequiredError(EventDeskError):
    status_code = 401
    public_message = "Please sign in to continue."


class AuthorizationError(EventDeskError):
    status_code = 403
    public_message = "You do not have permission to perform this action."


class NotFoundError(EventDeskError):
    status_code = 404
    public_message = "Not found."


class DuplicateError(EventDeskError):
    status_code = 409
    public_message = "You have already registered for this event with this email address."


class UpstreamError(EventDeskError):
    """A store, gateway or email call failed. Detail is logged, not shown."""

    status_code = 500
    public_message = "We could not complete your request right now. Please try again in a few minutes."

    def __init__(self, detail: str | None = None, message: str | None = None, error_code: str | None = None):
        super().__init__(message, error_code=error_code)
        self.detail = detail


def register_error_handlers(app) -> None:
    """Render the taxonomy and stock HTTP errors as JSON."""

    @app.errorhandler(EventDeskError)
    def handle_eventdesk_error(error: EventDeskError):
        if isinstance(error, UpstreamError):
            current_app.logger.error(f"Upstream failure: {error.detail or error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        current_app.logger.exception("Unhandled error")
        return jsonify({'success': False, 'error': UpstreamError.public_message}), 500


__all__ = [
    "EventDeskError",
    "ValidationError",
    "PaymentFailedError",
    "AuthRequiredError",
    "AuthorizationError",
    "NotFoundError",
    "DuplicateError",
    "UpstreamError",
    "register_error_handlers",
]
