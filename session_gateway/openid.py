"""
OpenID Connect client for the identity provider.

Only the authorization code grant is supported: the code is exchanged at the
token endpoint and the claims of the returned ID token are verified against
the provider's JWKS.
"""

import logging
from typing import Any, Dict, Optional

import jwt
import requests
from retry.api import retry_call

from . import config
from .exceptions import ConfigurationError, IdentityProviderUnavailable, \
    TokenExchangeFailed

logger = logging.getLogger(__name__)

ALGORITHMS = ['RS256', 'RS384', 'RS512', 'ES256', 'ES384', 'ES512']


class OpenIDClient(object):
    """
    Exchanges authorization codes for identity claims.

    Parameters
    ----------
    discovery_url : str
        Location of the provider's ``.well-known/openid-configuration``.
    client_id : str
    client_secret : str
    redirect_uri : str
        Must be the redirect URI the code was issued for.
    timeout : float
        Seconds to wait for each call to the provider.
    retries : int
        Re-attempts after a transient failure (network error or 5xx).
    delay : float
        Seconds between re-attempts.
    log_tokensets : bool
        Log every token set received, at DEBUG level.
    session : :class:`requests.Session`
        Mainly for testing.

    """

    def __init__(self, discovery_url: str, client_id: str, client_secret: str,
                 redirect_uri: str,
                 timeout: float = config.REQUEST_TIMEOUT / 1000,
                 retries: int = config.REQUEST_RETRIES,
                 delay: float = config.REQUEST_RETRY_DELAY,
                 log_tokensets: bool = config.DEBUG_LOG_TOKENSETS,
                 session: Optional[requests.Session] = None) -> None:
        self.discovery_url = discovery_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.retries = retries
        self.delay = delay
        self.log_tokensets = log_tokensets
        self._session = session or requests.Session()
        self._metadata: Optional[Dict[str, Any]] = None
        self._jwks_client: Optional[jwt.PyJWKClient] = None

    @classmethod
    def from_config(cls, settings: Dict[str, Any]) -> 'OpenIDClient':
        """Build a client from ``DISCOVERY_URL``, ``CLIENT_ID`` etc."""
        required = ('DISCOVERY_URL', 'CLIENT_ID', 'CLIENT_SECRET',
                    'REDIRECT_URI')
        missing = [key for key in required if not settings.get(key)]
        if missing:
            raise ConfigurationError(
                f'Missing OpenID settings: {", ".join(missing)}')
        return cls(settings['DISCOVERY_URL'], settings['CLIENT_ID'],
                   settings['CLIENT_SECRET'], settings['REDIRECT_URI'],
                   timeout=settings.get('REQUEST_TIMEOUT',
                                        config.REQUEST_TIMEOUT) / 1000,
                   retries=settings.get('REQUEST_RETRIES',
                                        config.REQUEST_RETRIES),
                   delay=settings.get('REQUEST_RETRY_DELAY',
                                      config.REQUEST_RETRY_DELAY),
                   log_tokensets=bool(settings.get(
                       'DEBUG_LOG_TOKENSETS', config.DEBUG_LOG_TOKENSETS)))

    def _call(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = self._session.request(method, url, timeout=self.timeout,
                                         **kwargs)
        except requests.exceptions.RequestException as e:
            raise IdentityProviderUnavailable(f'{url} unreachable: {e}') from e
        if resp.status_code >= 500:
            raise IdentityProviderUnavailable(
                f'{url} failed with status {resp.status_code}')
        if resp.status_code >= 400:
            logger.info('Provider refused request: %s %s', resp.status_code,
                        resp.text)
            raise TokenExchangeFailed(
                f'{url} refused with status {resp.status_code}')
        try:
            data: Dict[str, Any] = resp.json()
        except ValueError as e:
            raise TokenExchangeFailed(f'{url} returned no JSON') from e
        return data

    def _retrying(self, method: str, url: str, **kwargs: Any
                  ) -> Dict[str, Any]:
        data: Dict[str, Any] = retry_call(
            self._call, fargs=[method, url], fkwargs=kwargs,
            exceptions=IdentityProviderUnavailable, tries=self.retries + 1,
            delay=self.delay, logger=logger)
        return data

    @property
    def metadata(self) -> Dict[str, Any]:
        """The provider's discovery document, fetched once."""
        if self._metadata is None:
            self._metadata = self._retrying('GET', self.discovery_url)
        return self._metadata

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(self.metadata['jwks_uri'])
        return self._jwks_client

    def decode(self, id_token: str) -> Dict[str, Any]:
        """Verify ``id_token`` and get its claims."""
        try:
            key = self.jwks_client.get_signing_key_from_jwt(id_token)
            claims: Dict[str, Any] = jwt.decode(
                id_token, key.key, algorithms=ALGORITHMS,
                audience=self.client_id, issuer=self.metadata.get('issuer'))
        except jwt.PyJWTError as e:
            raise TokenExchangeFailed(f'Invalid ID token: {e}') from e
        return claims

    def exchange(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for the claims of its ID token.

        Raises
        ------
        :class:`.IdentityProviderUnavailable`
            If the provider kept failing transiently.
        :class:`.TokenExchangeFailed`
            If the provider refused the code, or the ID token is invalid.

        """
        tokens = self._retrying('POST', self.metadata['token_endpoint'], data={
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
            'client_id': self.client_id,
            'client_secret': self.client_secret
        })
        if self.log_tokensets:
            logger.debug('Received token set: %s', tokens)
        if not tokens.get('id_token'):
            raise TokenExchangeFailed('No ID token in token response')
        return self.decode(tokens['id_token'])
