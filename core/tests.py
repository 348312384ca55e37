import json
from unittest import mock
from urllib.parse import quote

import requests
from django.http import HttpResponse
from django.test import SimpleTestCase, RequestFactory, override_settings

from .api_client import ApiClient, ApiError, error_message_for, NETWORK_ERROR_MESSAGE
from .auth import AuthContext
from .middleware import AuthContextMiddleware
from .storage import InMemoryStore, CART_KEY


def fake_response(status_code, payload=None):
    response = mock.Mock(status_code=status_code)
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    return response


class StorageTests(SimpleTestCase):
    def test_json_records_round_trip(self):
        store = InMemoryStore()
        store.set_json(CART_KEY, [{'id': 'basic-subscription', 'price': '$10'}])
        self.assertEqual(store.get_json(CART_KEY), [{'id': 'basic-subscription', 'price': '$10'}])

    def test_malformed_record_falls_back_to_default(self):
        store = InMemoryStore({CART_KEY: '{not json'})
        with self.assertLogs('core.storage', level='WARNING'):
            self.assertEqual(store.get_json(CART_KEY, []), [])

    def test_remove_missing_key_is_harmless(self):
        store = InMemoryStore()
        store.remove(CART_KEY)
        self.assertIsNone(store.get(CART_KEY))


class AuthContextTests(SimpleTestCase):
    def test_reads_token_and_url_encoded_profile(self):
        profile = quote(json.dumps({'name': 'Ada Client', 'email': 'ada@example.com', 'subscription': 'Diamond'}))
        auth = AuthContext.from_cookies({'token': 'abc', 'user': profile})

        self.assertTrue(auth.is_authenticated)
        self.assertEqual(auth.name, 'Ada Client')
        self.assertEqual(auth.email, 'ada@example.com')
        self.assertTrue(auth.use_member_price)

    def test_none_subscription_gets_regular_prices(self):
        self.assertFalse(AuthContext(token='abc', subscription="None").use_member_price)
        self.assertFalse(AuthContext(token='abc', subscription=None).use_member_price)

    def test_malformed_profile_is_ignored(self):
        with self.assertLogs('core.auth', level='WARNING'):
            auth = AuthContext.from_cookies({'user': '%7Bbroken'})
        self.assertFalse(auth.is_authenticated)
        self.assertEqual(auth.name, '')


class AuthContextMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_attaches_context(self):
        seen = {}

        def view(request):
            seen['auth'] = request.auth_context
            return HttpResponse()

        request = self.factory.get('/')
        request.COOKIES['token'] = 'abc'
        AuthContextMiddleware(view)(request)
        self.assertEqual(seen['auth'].token, 'abc')

    def test_rejected_token_clears_cookies(self):
        def view(request):
            request.auth_context.invalidate()
            return HttpResponse()

        request = self.factory.get('/')
        request.COOKIES['token'] = 'abc'
        response = AuthContextMiddleware(view)(request)

        self.assertEqual(response.cookies['token'].value, '')
        self.assertEqual(response.cookies['token']['max-age'], 0)
        self.assertIn('user', response.cookies)


class ErrorMessageTests(SimpleTestCase):
    def test_backend_message_wins_for_validation_statuses(self):
        self.assertEqual(error_message_for(422, {'message': 'Email is invalid'}), 'Email is invalid')
        self.assertEqual(error_message_for(404, {'message': 'Contract not found'}), 'Contract not found')

    def test_generic_message_for_auth_and_server_errors(self):
        self.assertEqual(error_message_for(401, {'message': 'jwt expired'}), "Authentication required - please log in again")
        self.assertEqual(error_message_for(500), "Server error - please try again later")

    def test_unknown_status(self):
        self.assertEqual(error_message_for(418), "API Error: 418")
        self.assertEqual(error_message_for(418, {'message': 'Teapot'}), "Teapot")


@override_settings(CHECKOUT_API_URL='https://api.test/api/', CHECKOUT_API_RETRY_ATTEMPTS=2, CHECKOUT_API_RETRY_DELAY=0)
class ApiClientTests(SimpleTestCase):
    @mock.patch('core.api_client.requests.request')
    def test_sends_bearer_token(self, request):
        request.return_value = fake_response(200, {'success': True})

        payload = ApiClient(token='abc').get('/contracts/my-contracts')

        self.assertEqual(payload, {'success': True})
        args, kwargs = request.call_args
        self.assertEqual(args, ('GET', 'https://api.test/api/contracts/my-contracts'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer abc')

    @mock.patch('core.api_client.requests.request')
    def test_guest_requests_have_no_authorization(self, request):
        request.return_value = fake_response(200, {})
        ApiClient().post('/payments/discounts/public/verify', {'code': 'SAVE10'})
        self.assertNotIn('Authorization', request.call_args.kwargs['headers'])

    @mock.patch('core.api_client.requests.request')
    def test_network_errors_are_retried(self, request):
        request.side_effect = [requests.ConnectionError("down"), fake_response(200, {'ok': 1})]

        self.assertEqual(ApiClient().get('/contracts/public/templates'), {'ok': 1})
        self.assertEqual(request.call_count, 2)

    @mock.patch('core.api_client.requests.request')
    def test_network_failure_after_retries(self, request):
        request.side_effect = requests.ConnectionError("down")

        with self.assertRaises(ApiError) as ctx:
            ApiClient().get('/contracts/public/templates')

        self.assertEqual(ctx.exception.message, NETWORK_ERROR_MESSAGE)
        self.assertEqual(request.call_count, 3)

    @mock.patch('core.api_client.requests.request')
    def test_server_errors_are_retried_then_raised(self, request):
        request.return_value = fake_response(503, {'message': 'busy'})

        with self.assertRaises(ApiError) as ctx:
            ApiClient().put('/contracts/c1/payment', {'status': 'completed'})

        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(request.call_count, 3)

    @mock.patch('core.api_client.requests.request')
    def test_client_errors_are_not_retried(self, request):
        request.return_value = fake_response(400, {'message': 'Contract already exists for this product'})

        result = ApiClient(token='abc').send('POST', '/contracts/sign', json={})

        self.assertFalse(result.ok)
        self.assertEqual(result.message, 'Contract already exists for this product')
        self.assertEqual(request.call_count, 1)

    @mock.patch('core.api_client.requests.request')
    def test_unauthorized_invokes_callback(self, request):
        request.return_value = fake_response(401, {'message': 'jwt expired'})
        auth = AuthContext(token='stale')

        with self.assertRaises(ApiError):
            ApiClient(token=auth.token, on_unauthorized=auth.invalidate).get('/contracts/my-contracts')

        self.assertTrue(auth.expired)

    @mock.patch('core.api_client.requests.request')
    def test_non_json_body(self, request):
        request.return_value = fake_response(204)
        self.assertEqual(ApiClient().send('GET', '/health').payload, {})
