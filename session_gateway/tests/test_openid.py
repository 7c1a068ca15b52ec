"""Tests for :mod:`session_gateway.openid`."""

import time
from unittest import TestCase, mock

import jwt
import requests
from cryptography.hazmat.primitives.asymmetric import rsa

from .. import openid
from ..exceptions import ConfigurationError, IdentityProviderUnavailable, \
    TokenExchangeFailed

DISCOVERY_URL = 'https://idp.example.org/.well-known/openid-configuration'
METADATA = {
    'issuer': 'https://idp.example.org',
    'token_endpoint': 'https://idp.example.org/token',
    'jwks_uri': 'https://idp.example.org/jwks'
}
KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def id_token(**claims):
    payload = {'iss': METADATA['issuer'], 'aud': 'client',
               'exp': int(time.time()) + 300, 'vo_id': 'u1', 'sub': 'acct-1'}
    payload.update(claims)
    return jwt.encode(payload, KEY, algorithm='RS256')


def response(status_code=200, data=None):
    resp = mock.MagicMock(status_code=status_code, text='')
    resp.json.return_value = data
    return resp


class TestExchange(TestCase):
    """Tests for :meth:`.OpenIDClient.exchange`."""

    def setUp(self):
        self.session = mock.MagicMock(spec=requests.Session)
        self.token_responses = []

        def request(method, url, **kwargs):
            if url == DISCOVERY_URL:
                return response(data=METADATA)
            outcome = self.token_responses.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        self.session.request.side_effect = request
        self.client = openid.OpenIDClient(DISCOVERY_URL, 'client', 'secret',
                                          'https://app.example.org/callback',
                                          retries=2, delay=0,
                                          session=self.session)
        signing_key = mock.MagicMock(key=KEY.public_key())
        self.client._jwks_client = mock.MagicMock(**{
            'get_signing_key_from_jwt.return_value': signing_key})

    def token_calls(self):
        return [c for c in self.session.request.call_args_list
                if c[0][1] == METADATA['token_endpoint']]

    def test_exchange(self):
        """The claims of the verified ID token are returned."""
        self.token_responses = [response(data={'id_token': id_token()})]
        claims = self.client.exchange('the-code')
        self.assertEqual(claims['vo_id'], 'u1')

        (method, url), kwargs = self.token_calls()[0]
        self.assertEqual(method, 'POST')
        self.assertEqual(kwargs['data']['code'], 'the-code')
        self.assertEqual(kwargs['data']['grant_type'], 'authorization_code')
        self.assertEqual(kwargs['timeout'], self.client.timeout)

    def test_transient_failures_are_retried(self):
        self.token_responses = [
            response(503),
            requests.exceptions.ConnectionError('reset'),
            response(data={'id_token': id_token()})
        ]
        self.assertEqual(self.client.exchange('code')['sub'], 'acct-1')
        self.assertEqual(len(self.token_calls()), 3)

    def test_attempts_are_bounded(self):
        self.token_responses = [response(502), response(502), response(502),
                                response(data={'id_token': id_token()})]
        with self.assertRaises(IdentityProviderUnavailable) as raised:
            self.client.exchange('code')
        self.assertEqual(raised.exception.reason, 'token-exchange')
        self.assertEqual(len(self.token_calls()), 3)

    def test_refused_code_is_not_retried(self):
        self.token_responses = [response(400, {'error': 'invalid_grant'})]
        with self.assertRaises(TokenExchangeFailed):
            self.client.exchange('code')
        self.assertEqual(len(self.token_calls()), 1)

    def test_invalid_id_token(self):
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        forged = jwt.encode({'aud': 'client', 'iss': METADATA['issuer']},
                            other, algorithm='RS256')
        self.token_responses = [response(data={'id_token': forged})]
        with self.assertRaises(TokenExchangeFailed):
            self.client.exchange('code')

    def test_wrong_audience(self):
        self.token_responses = [
            response(data={'id_token': id_token(aud='someone-else')})]
        with self.assertRaises(TokenExchangeFailed):
            self.client.exchange('code')

    def test_token_set_logging(self):
        """Token sets are logged only when enabled on the client."""
        self.client.log_tokensets = False
        self.token_responses = [response(data={'id_token': id_token()})]
        with mock.patch.object(openid.logger, 'debug') as debug:
            self.client.exchange('code')
        debug.assert_not_called()

        self.client.log_tokensets = True
        self.token_responses = [response(data={'id_token': id_token()})]
        with self.assertLogs('session_gateway.openid', level='DEBUG') as logs:
            self.client.exchange('code')
        self.assertTrue(any('Received token set' in line
                            for line in logs.output))

    def test_no_id_token(self):
        self.token_responses = [response(data={'access_token': 'foo'})]
        with self.assertRaises(TokenExchangeFailed):
            self.client.exchange('code')


class TestFromConfig(TestCase):
    def test_missing_settings(self):
        with self.assertRaises(ConfigurationError) as raised:
            openid.OpenIDClient.from_config({'DISCOVERY_URL': DISCOVERY_URL})
        self.assertIn('CLIENT_ID', str(raised.exception))

    def test_from_config(self):
        client = openid.OpenIDClient.from_config({
            'DISCOVERY_URL': DISCOVERY_URL, 'CLIENT_ID': 'client',
            'CLIENT_SECRET': 'secret', 'REDIRECT_URI': 'https://app/cb',
            'REQUEST_TIMEOUT': 1000, 'REQUEST_RETRIES': 5,
            'DEBUG_LOG_TOKENSETS': True
        })
        self.assertEqual(client.timeout, 1.0)
        self.assertEqual(client.retries, 5)
        self.assertTrue(client.log_tokensets)
