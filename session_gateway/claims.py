"""Extract a :class:`.ParsedIdentity` from the claims of an ID token."""

import logging
import re
from typing import Any, List, Mapping, Optional

from . import config
from .domain import ParsedIdentity

logger = logging.getLogger(__name__)


def _scalar(value: Any) -> Optional[str]:
    """Take the first element of list-valued claims."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    return [str(value)] if value else []


def email_from_claim(value: Optional[str]) -> Optional[str]:
    """
    Strip the organization suffix from an e-mail claim.

    ``test@example.com:OVO001827`` becomes ``test@example.com``.
    """
    if not value:
        return None
    return value.split(':')[0] or None


def sanitize_phone(value: Optional[str]) -> Optional[str]:
    """Drop the separators users put in phone numbers."""
    if not value:
        return None
    return re.sub(r'[/ .]', '', value) or None


def organization_code_from(value: Optional[str],
                           pattern: str = config.ORG_CODE_PATTERN
                           ) -> Optional[str]:
    """Find the organization code embedded in ``value``, if any."""
    if not value:
        return None
    match = re.search(pattern, value)
    return match.group(0) if match else None


def parse_role_notation(claim: Optional[str],
                        pattern: str = config.ROLE_CLAIM_PATTERN
                        ) -> Optional[str]:
    """
    Parse the internal role notation from a raw role claim.

    Parameters
    ----------
    claim : str
        E.g. ``Prefix-RoleA:ORG000123``.
    pattern : str
        Regular expression whose first group is the notation.

    Returns
    -------
    str or None
        ``RoleA`` for the example above; None if the claim does not match.

    """
    if not claim:
        return None
    match = re.match(pattern, claim)
    return match.group(1) if match else None


class ClaimParser(object):
    """Maps configured claim names onto the fields of a parsed identity."""

    def __init__(self, userid_claim: str = config.USERID_CLAIM,
                 accountid_claim: str = config.ACCOUNTID_CLAIM,
                 role_claim: str = config.ROLE_CLAIM,
                 org_code_claim: str = config.ORG_CODE_CLAIM,
                 org_name_claim: str = config.ORG_NAME_CLAIM,
                 email_claim: str = config.EMAIL_CLAIM,
                 phone_claim: str = config.PHONE_CLAIM,
                 org_code_pattern: str = config.ORG_CODE_PATTERN) -> None:
        self.userid_claim = userid_claim
        self.accountid_claim = accountid_claim
        self.role_claim = role_claim
        self.org_code_claim = org_code_claim
        self.org_name_claim = org_name_claim
        self.email_claim = email_claim
        self.phone_claim = phone_claim
        self.org_code_pattern = org_code_pattern

    def parse(self, claims: Mapping[str, Any]) -> ParsedIdentity:
        """Parse ``claims``. Missing or unparsable values become None."""
        role_claims = _as_list(claims.get(self.role_claim))
        if len(role_claims) > 1:
            logger.warning('Received %d role claims, only %s is used',
                           len(role_claims), role_claims[0])

        organization_code = organization_code_from(
            _scalar(claims.get(self.org_code_claim)), self.org_code_pattern)
        if organization_code is None and role_claims:
            organization_code = organization_code_from(role_claims[0],
                                                       self.org_code_pattern)

        return ParsedIdentity(
            user_id=_scalar(claims.get(self.userid_claim)),
            account_id=_scalar(claims.get(self.accountid_claim)),
            first_name=_scalar(claims.get(config.FIRST_NAME_CLAIM)),
            family_name=_scalar(claims.get(config.FAMILY_NAME_CLAIM)),
            email=email_from_claim(_scalar(claims.get(self.email_claim))),
            phone=sanitize_phone(_scalar(claims.get(self.phone_claim))),
            role_claims=role_claims,
            organization_code=organization_code,
            organization_name=_scalar(claims.get(self.org_name_claim))
        )


def parser_from_config(settings: Mapping[str, Any]) -> ClaimParser:
    """Build a :class:`.ClaimParser` from the ``*_CLAIM`` settings."""
    return ClaimParser(
        userid_claim=settings.get('USERID_CLAIM', config.USERID_CLAIM),
        accountid_claim=settings.get('ACCOUNTID_CLAIM', config.ACCOUNTID_CLAIM),
        role_claim=settings.get('ROLE_CLAIM', config.ROLE_CLAIM),
        org_code_claim=settings.get('ORG_CODE_CLAIM', config.ORG_CODE_CLAIM),
        org_name_claim=settings.get('ORG_NAME_CLAIM', config.ORG_NAME_CLAIM),
        email_claim=settings.get('EMAIL_CLAIM', config.EMAIL_CLAIM),
        phone_claim=settings.get('PHONE_CLAIM', config.PHONE_CLAIM),
        org_code_pattern=settings.get('ORG_CODE_PATTERN',
                                      config.ORG_CODE_PATTERN))
