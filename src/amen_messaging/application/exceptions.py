from __future__ import annotations


class AppError(Exception):
    """Base application error.

    ``code`` is the stable identifier clients switch on; ``retryable`` tells
    them whether repeating the same call may succeed.
    """

    code = "app_error"
    status_code = 400
    retryable = False

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotAuthenticatedError(AppError):
    code = "not_authenticated"
    status_code = 401


class InvalidInputError(AppError):
    code = "invalid_input"
    status_code = 422


class PermissionDeniedError(AppError):
    code = "permission_denied"
    status_code = 403


class UserBlockedError(AppError):
    code = "user_blocked"
    status_code = 403


class FollowRequiredError(AppError):
    code = "follow_required"
    status_code = 403


class MessagesNotAllowedError(AppError):
    code = "messages_not_allowed"
    status_code = 403


class ConversationNotFoundError(AppError):
    code = "conversation_not_found"
    status_code = 404


class MessageNotFoundError(AppError):
    code = "message_not_found"
    status_code = 404


class UploadFailedError(AppError):
    code = "upload_failed"
    status_code = 502
    retryable = True


class NetworkError(AppError):
    code = "network_error"
    status_code = 503
    retryable = True
