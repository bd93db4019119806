"""
Authentication utilities for extracting the reviewer from Cognito tokens.
"""
from typing import Optional

from .errors import AuthenticationError, PreconditionError
from .models import ReviewerId


def get_user_email(event: dict) -> Optional[str]:
    """Extract user email from Cognito claims."""
    try:
        return event['requestContext']['authorizer']['claims']['email']
    except (KeyError, TypeError):
        return None


def require_reviewer(event: dict) -> ReviewerId:
    """
    Resolve the authenticated reviewer for a request.

    Any authenticated user may review; there is no role check.

    Raises:
        AuthenticationError: when the request carries no usable email claim
    """
    try:
        return ReviewerId(get_user_email(event))
    except PreconditionError:
        raise AuthenticationError('Authentication required')
