"""
Service Token Authentication for Django REST Framework

The engine is called by the surrounding web application, not by end users.
Callers present a shared secret in the X-Service-Token header; the acting
user is always passed explicitly as a path or query parameter.
"""
import hmac
import logging
from dataclasses import dataclass

from django.conf import settings
from rest_framework import authentication, exceptions, permissions

logger = logging.getLogger(__name__)


@dataclass
class ServicePrincipal:
    """
    Represents a trusted calling service.

    This is NOT a Django User model - it only marks the request as coming
    from a caller that knows the shared token.
    """
    name: str = 'service'

    @property
    def is_authenticated(self) -> bool:
        return True


class ServiceTokenAuthentication(authentication.BaseAuthentication):
    """
    Authenticates requests using the shared ENGINE_SERVICE_TOKEN.

    The token is passed via the X-Service-Token header.
    """

    def authenticate(self, request):
        """
        Authenticate the request using the service token header.

        Returns:
            tuple: (ServicePrincipal, None) if authenticated
            None: If no token header provided

        Raises:
            AuthenticationFailed: If the token is invalid
        """
        token = request.META.get('HTTP_X_SERVICE_TOKEN', '')

        if not token:
            return None

        expected_token = getattr(settings, 'ENGINE_SERVICE_TOKEN', None)

        if not expected_token:
            logger.error('ENGINE_SERVICE_TOKEN not configured in settings')
            return None

        # Use constant-time comparison to prevent timing attacks
        if not hmac.compare_digest(token, expected_token):
            raise exceptions.AuthenticationFailed('Invalid service token')

        return (ServicePrincipal(), None)

    def authenticate_header(self, request):
        return 'X-Service-Token'


class IsTrustedService(permissions.BasePermission):
    """Allow only requests authenticated by ServiceTokenAuthentication."""

    def has_permission(self, request, view):
        return isinstance(request.user, ServicePrincipal)
