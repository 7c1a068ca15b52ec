"""Configuration for the session gateway, read from the environment."""

import os

DATABASE_URI = os.environ.get('DATABASE_URI', 'sqlite:///./sessions.db')
"""SQLAlchemy URI of the identity and session store."""

DISCOVERY_URL = os.environ.get('MU_APPLICATION_AUTH_DISCOVERY_URL')
CLIENT_ID = os.environ.get('MU_APPLICATION_AUTH_CLIENT_ID')
CLIENT_SECRET = os.environ.get('MU_APPLICATION_AUTH_CLIENT_SECRET')
REDIRECT_URI = os.environ.get('MU_APPLICATION_AUTH_REDIRECT_URI')

REQUEST_TIMEOUT = int(os.environ.get('REQUEST_TIMEOUT') or 2500)
"""Timeout in milliseconds for calls to the identity provider."""

REQUEST_RETRIES = int(os.environ.get('REQUEST_RETRIES') or 2)
"""Number of re-attempts after a transient identity provider failure."""

REQUEST_RETRY_DELAY = float(os.environ.get('REQUEST_RETRY_DELAY') or 0)
"""Seconds to wait between re-attempts. Zero means re-attempt immediately."""

USERID_CLAIM = os.environ.get('MU_APPLICATION_AUTH_USERID_CLAIM', 'vo_id')
ACCOUNTID_CLAIM = os.environ.get('MU_APPLICATION_AUTH_ACCOUNTID_CLAIM', 'sub')
ROLE_CLAIM = os.environ.get('MU_APPLICATION_AUTH_ROLE_CLAIM',
                            'dkb_kaleidos_rol_3d')
ORG_CODE_CLAIM = os.environ.get('MU_APPLICATION_AUTH_ORG_CODE_CLAIM',
                                'vo_orgcode')
ORG_NAME_CLAIM = os.environ.get('MU_APPLICATION_AUTH_ORG_NAME_CLAIM',
                                'vo_orgnaam')
FIRST_NAME_CLAIM = 'given_name'
FAMILY_NAME_CLAIM = 'family_name'
EMAIL_CLAIM = os.environ.get('MU_APPLICATION_AUTH_VO_EMAIL_CLAIM', 'vo_email')
PHONE_CLAIM = os.environ.get('MU_APPLICATION_AUTH_VO_PHONE_CLAIM', 'phone')

ROLE_CLAIM_PATTERN = os.environ.get('ROLE_CLAIM_PATTERN', r'^[^-:]+-(\w+):')
"""
Extracts the role notation from a raw role claim.

E.g. ``KaleidosGebruiker-Kaleidos_Overheidsorganisatie:OVO000617`` yields
``Kaleidos_Overheidsorganisatie``. The first group is the notation.
"""

ORG_CODE_PATTERN = os.environ.get('ORG_CODE_PATTERN', r'[A-Z]{3}\d{6}')
"""Organization codes are embedded in larger claim values."""

ALLOW_NO_ROLE_CLAIM = \
    os.environ.get('MU_APPLICATION_AUTH_ALLOW_NO_ROLE_CLAIM', '') == 'true'
DEFAULT_GROUP = os.environ.get('MU_APPLICATION_AUTH_DEFAULT_GROUP', '')
"""Name of the group new persons join when the group resolver is used."""

RESOURCE_BASE_URI = os.environ.get('MU_APPLICATION_RESOURCE_BASE_URI',
                                   'http://data.example.org')
ACCOUNT_SERVICE_HOMEPAGE = os.environ.get(
    'ACCOUNT_SERVICE_HOMEPAGE', 'https://github.com/lblod/acmidm-login-service')

ROLE_RESOLVER = os.environ.get('ROLE_RESOLVER', 'membership')
"""``membership`` (role catalogue + memberships) or ``group``."""

ORGANIZATION_POLICY = os.environ.get('ORGANIZATION_POLICY', 'propagate')
"""``propagate`` organization blocks into memberships, or check ``direct``."""

ADMIN_ROLE = os.environ.get('ADMIN_ROLE', 'Admin')
"""Role name required to purge sessions of other users."""

SESSION_HEADER = os.environ.get('SESSION_HEADER', 'mu-session-id')
CACHE_CLEAR_HEADER = os.environ.get('CACHE_CLEAR_HEADER',
                                    'mu-auth-allowed-groups')

DEBUG_LOG_TOKENSETS = bool(os.environ.get('DEBUG_LOG_TOKENSETS'))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

SERVER_ROOT_PATH = os.environ.get('SERVER_ROOT_PATH', '')


def as_extra() -> dict:
    """Settings as keyword arguments for the application ``extra`` dict."""
    return {key: value for key, value in globals().items()
            if key.isupper()}
