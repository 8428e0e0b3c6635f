from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from .client import BackendClient, decode_token_payload, is_token_valid
from .envelope import unwrap_collection, unwrap_object
from .exceptions import ApiError, AuthenticationError, EnvelopeError
from .testing import make_token


def _response(status=200, body=None, reason='OK'):
    response = mock.Mock()
    response.status_code = status
    response.ok = status < 400
    response.reason = reason
    response.content = b'{}' if body is not None else b''
    response.json.return_value = body
    return response


class EnvelopeTests(SimpleTestCase):
    def test_bare_list_is_returned_as_is(self):
        rows = [{'_id': '1'}]
        self.assertIs(unwrap_collection(rows), rows)

    def test_data_envelope_is_unwrapped(self):
        self.assertEqual(unwrap_collection({'success': True, 'data': [{'_id': '1'}]}), [{'_id': '1'}])

    def test_named_list_is_unwrapped_only_when_asked_for(self):
        body = {'success': True, 'fees': [{'_id': 'f1'}]}
        self.assertEqual(unwrap_collection(body, key='fees'), [{'_id': 'f1'}])
        self.assertEqual(unwrap_collection({'data': [{'_id': 'f2'}]}, key='fees'), [{'_id': 'f2'}])
        with self.assertRaises(EnvelopeError):
            unwrap_collection(body)
        with self.assertRaises(EnvelopeError):
            unwrap_collection({'fees': None}, key='fees')

    def test_unexpected_collection_shape_fails_loudly(self):
        with self.assertRaises(EnvelopeError):
            unwrap_collection({'items': []})
        with self.assertRaises(EnvelopeError):
            unwrap_collection({'data': {'_id': '1'}})
        with self.assertRaises(EnvelopeError):
            unwrap_collection(None)

    def test_object_envelope(self):
        self.assertEqual(unwrap_object({'data': {'name': 'A'}}), {'name': 'A'})
        self.assertEqual(unwrap_object({'name': 'A'}), {'name': 'A'})
        with self.assertRaises(EnvelopeError):
            unwrap_object([{'name': 'A'}])


class TokenTests(SimpleTestCase):
    def test_payload_is_decoded(self):
        token = make_token(role='employee')
        self.assertEqual(decode_token_payload(token)['role'], 'employee')

    def test_expired_and_malformed_tokens_are_invalid(self):
        self.assertTrue(is_token_valid(make_token()))
        self.assertFalse(is_token_valid(make_token(expires_in=-10)))
        self.assertFalse(is_token_valid('not-a-token'))
        self.assertFalse(is_token_valid('a.%%%.c'))
        self.assertFalse(is_token_valid(None))


@override_settings(PANEL_API_BASE_URL='http://backend.test/api/', PANEL_API_TIMEOUT=3)
class BackendClientTests(SimpleTestCase):
    def setUp(self):
        self.session = mock.MagicMock(spec=requests.Session)
        self.session.headers = {}

    def test_request_sends_bearer_token_and_unwraps_students(self):
        token = make_token()
        self.session.request.return_value = _response(body={'data': [{'_id': 's1'}]})
        client = BackendClient(token=token, session=self.session)

        rows = client.students.all()

        self.assertEqual(rows, [{'_id': 's1'}])
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('GET', 'http://backend.test/api/students/show-students'))
        self.assertEqual(kwargs['headers']['Authorization'], f'Bearer {token}')
        self.assertEqual(kwargs['timeout'], 3)

    def test_expired_token_is_not_sent(self):
        self.session.request.return_value = _response(body=[])
        client = BackendClient(token=make_token(expires_in=-5), session=self.session)
        client.fees.all()
        _, kwargs = self.session.request.call_args
        self.assertNotIn('Authorization', kwargs['headers'])

    def test_error_status_raises_with_backend_message(self):
        self.session.request.return_value = _response(
            status=400, body={'message': 'Department already exists'}, reason='Bad Request',
        )
        client = BackendClient(session=self.session)
        with self.assertRaises(ApiError) as ctx:
            client.departments.create({'name': 'MD'})
        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(ctx.exception.message, 'Department already exists')

    def test_unauthorized_raises_authentication_error(self):
        self.session.request.return_value = _response(status=401, body=None, reason='Unauthorized')
        client = BackendClient(session=self.session)
        with self.assertRaises(AuthenticationError):
            client.employees.all()

    def test_transport_failure_is_wrapped(self):
        self.session.request.side_effect = requests.ConnectionError('refused')
        client = BackendClient(session=self.session)
        with self.assertRaises(ApiError) as ctx:
            client.fees.all()
        self.assertIsNone(ctx.exception.status)

    def test_pay_fee_defaults_to_cash(self):
        self.session.request.return_value = _response(body={'success': True})
        BackendClient(session=self.session).fees.pay('f1', payment_method='', paid_amount=500.0)
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('PUT', 'http://backend.test/api/fees/f1/pay'))
        self.assertEqual(kwargs['json'], {'paymentMethod': 'Cash', 'paidAmount': 500.0})

    def test_student_fees_accept_named_fees_list(self):
        self.session.request.return_value = _response(
            body={'success': True, 'fees': [{'_id': 'f1', 'status': 'paid', 'amount': 10}]},
        )
        rows = BackendClient(session=self.session).students.fees('s1')
        self.assertEqual(rows, [{'_id': 'f1', 'status': 'paid', 'amount': 10}])
        args, _ = self.session.request.call_args
        self.assertEqual(args, ('GET', 'http://backend.test/api/students/s1/fees'))

    def test_admin_accounts_routes(self):
        self.session.request.return_value = _response(body={'success': True, 'data': []})
        client = BackendClient(session=self.session)

        client.admin.all()
        self.assertEqual(self.session.request.call_args[0], ('GET', 'http://backend.test/api/admin'))
        client.admin.create({'email': 'ops@example.com'})
        self.assertEqual(self.session.request.call_args[0], ('POST', 'http://backend.test/api/admin/add'))
        client.admin.delete('a2')
        self.assertEqual(self.session.request.call_args[0], ('DELETE', 'http://backend.test/api/admin/a2'))
