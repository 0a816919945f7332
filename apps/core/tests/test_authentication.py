"""
Service Authentication Tests

The engine trusts callers that present ENGINE_SERVICE_TOKEN in the
X-Service-Token header.
"""
from unittest.mock import patch

from django.test import RequestFactory, TestCase, override_settings
from rest_framework import exceptions
from rest_framework.test import APIClient
from rest_framework.views import APIView

from apps.core.authentication import IsTrustedService, ServicePrincipal, ServiceTokenAuthentication


@override_settings(ENGINE_SERVICE_TOKEN='s3cret')
class ServiceTokenAuthenticationTests(TestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.auth = ServiceTokenAuthentication()

    def test_missing_header_is_anonymous(self):
        self.assertIsNone(self.auth.authenticate(self.factory.get('/')))

    def test_valid_token_returns_principal(self):
        request = self.factory.get('/', HTTP_X_SERVICE_TOKEN='s3cret')
        principal, _ = self.auth.authenticate(request)
        self.assertIsInstance(principal, ServicePrincipal)
        self.assertTrue(principal.is_authenticated)

    def test_wrong_token_fails(self):
        request = self.factory.get('/', HTTP_X_SERVICE_TOKEN='guess')
        with self.assertRaises(exceptions.AuthenticationFailed):
            self.auth.authenticate(request)

    @override_settings(ENGINE_SERVICE_TOKEN='')
    def test_unconfigured_token_authenticates_nobody(self):
        request = self.factory.get('/', HTTP_X_SERVICE_TOKEN='anything')
        self.assertIsNone(self.auth.authenticate(request))

    def test_permission_requires_principal(self):
        request = self.factory.get('/')
        request.user = None
        self.assertFalse(IsTrustedService().has_permission(request, None))
        request.user = ServicePrincipal()
        self.assertTrue(IsTrustedService().has_permission(request, None))


@override_settings(ENGINE_SERVICE_TOKEN='s3cret')
class ServiceTokenEndpointTests(TestCase):
    """Endpoints with the production permission class in place."""

    def setUp(self):
        patcher = patch.object(APIView, 'permission_classes', [IsTrustedService])
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = APIClient()

    def test_request_without_token_is_unauthorized(self):
        response = self.client.get('/api/commissions/report')
        self.assertEqual(response.status_code, 401)

    def test_request_with_wrong_token_is_unauthorized(self):
        self.client.credentials(HTTP_X_SERVICE_TOKEN='guess')
        response = self.client.get('/api/commissions/report')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'AuthenticationFailed')

    def test_request_with_token_is_served(self):
        self.client.credentials(HTTP_X_SERVICE_TOKEN='s3cret')
        response = self.client.get('/api/commissions/report')
        self.assertEqual(response.status_code, 200)

    def test_health_check_is_public(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['service'], 'commission-engine')
        self.assertEqual(response.json()['engine']['unclaimed_policy'], 'unassigned')
