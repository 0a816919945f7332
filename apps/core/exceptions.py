"""
Custom Exception Handling for the Commission Engine

Provides consistent error response format across all API endpoints and the
error taxonomy raised by the split, traversal and reporting code.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    """
    Custom exception handler that provides consistent error format.

    Error Response Format:
    {
        "error": "ErrorType",
        "message": "Human-readable error message",
        "status_code": 409,
        "details": {...}  // Optional, additional context
    }
    """
    if isinstance(exc, EngineError):
        logger.warning(f'{exc.__class__.__name__}: {exc.message}')
        error_data = {
            'error': exc.__class__.__name__,
            'code': exc.code,
            'message': exc.message,
            'status_code': exc.status_code,
        }
        if exc.details:
            error_data['details'] = exc.details
        return Response(error_data, status=exc.status_code)

    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        # Standardize the response format
        error_data = {
            'error': exc.__class__.__name__,
            'message': str(exc.detail) if hasattr(exc, 'detail') else str(exc),
        }

        if hasattr(exc, 'status_code'):
            error_data['status_code'] = exc.status_code

        # Handle DRF validation errors specially
        if hasattr(exc, 'detail'):
            if isinstance(exc.detail, dict):
                error_data['details'] = exc.detail
                # Create a summary message from field errors
                messages = []
                for field, errors in exc.detail.items():
                    if isinstance(errors, list):
                        messages.append(f"{field}: {', '.join(str(e) for e in errors)}")
                    else:
                        messages.append(f"{field}: {errors}")
                error_data['message'] = '; '.join(messages)
            elif isinstance(exc.detail, list):
                error_data['message'] = ', '.join(str(e) for e in exc.detail)

        response.data = error_data

    else:
        # Handle unexpected exceptions
        logger.exception(f'Unhandled exception: {exc}')

        error_data = {
            'error': 'InternalServerError',
            'message': 'An unexpected error occurred',
        }

        response = Response(
            error_data,
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response


class EngineError(Exception):
    """
    Base class for commission engine errors.

    Carries a machine-readable code, a human-readable message and optional
    details; the exception handler maps it to ``status_code``.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'engine_error'

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class UnknownUserError(EngineError):
    """Raised when a referenced user does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'unknown_user'

    def __init__(self, user_id):
        super().__init__(f'User {user_id} not found', details={'user_id': str(user_id)})


class UnknownDealError(EngineError):
    """Raised when a referenced deal does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'unknown_deal'

    def __init__(self, deal_id):
        super().__init__(f'Deal {deal_id} not found', details={'deal_id': str(deal_id)})


class InactiveAgentError(EngineError):
    """A deal was written by a user who is not ACTIVE; no splits may be computed."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'inactive_agent'

    def __init__(self, agent_id, agent_status: str):
        super().__init__(
            f'Agent {agent_id} is {agent_status}; commission splits require an ACTIVE agent',
            details={'agent_id': str(agent_id), 'status': agent_status},
        )


class CycleDetectedError(EngineError):
    """An upline/downline walk revisited a user."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'cycle_detected'

    def __init__(self, start_id, repeated_id):
        super().__init__(
            f'Hierarchy cycle detected starting from {start_id}: {repeated_id} was reached twice',
            details={'start_id': str(start_id), 'repeated_id': str(repeated_id)},
        )
        self.start_id = start_id
        self.repeated_id = repeated_id


class DepthLimitExceededError(EngineError):
    """
    A traversal hit the configured depth ceiling.

    Traversals truncate and flag their result instead of raising; this is only
    raised when a caller asks for strict traversal. ``partial`` holds what was
    collected before the ceiling.
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = 'depth_limit_exceeded'

    def __init__(self, root_id, max_depth: int, partial=None):
        super().__init__(
            f'Hierarchy below {root_id} is deeper than {max_depth} levels',
            details={'root_id': str(root_id), 'max_depth': max_depth},
        )
        self.partial = partial


class InconsistentSplitError(EngineError):
    """Persisted split amounts for a deal do not reconcile with its pool."""
    status_code = status.HTTP_409_CONFLICT
    default_code = 'inconsistent_split'

    def __init__(self, deal_id, problems: list[str]):
        super().__init__(
            f'Commission splits for deal {deal_id} do not reconcile: {"; ".join(problems)}',
            details={'deal_id': str(deal_id), 'problems': problems},
        )
        self.problems = problems


class NotAManagerError(EngineError):
    """Team reports were requested for a user below manager rank."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = 'not_a_manager'

    def __init__(self, user_id, level: int):
        super().__init__(
            f'User {user_id} at level {level} does not manage a team',
            details={'user_id': str(user_id), 'commission_level': level},
        )
