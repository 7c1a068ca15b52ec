"""Defines the identity and session concepts used by the gateway."""

from typing import Any, List, NamedTuple, Optional
from datetime import datetime

ALLOWED = 'allowed'
BLOCKED = 'blocked'
STATUSES = (ALLOWED, BLOCKED)
"""Access status of persons, organizations and memberships."""


class ParsedIdentity(NamedTuple):
    """Typed view on the claims asserted by the identity provider."""

    user_id: Optional[str]
    """Natural key of the :class:`.DBPerson`."""

    account_id: Optional[str]
    """Natural key of the :class:`.DBAccount`, together with the person."""

    first_name: Optional[str] = None
    family_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    role_claims: List[str] = []
    """All raw role claims, in the order the provider sent them."""

    organization_code: Optional[str] = None
    organization_name: Optional[str] = None

    @property
    def role_claim(self) -> Optional[str]:
        """The role claim used for role resolution (the first one)."""
        return self.role_claims[0] if self.role_claims else None


class Decision(NamedTuple):
    """Outcome of the access gate."""

    allowed: bool
    reason: Optional[str] = None
    """Reason tag when access is blocked, e.g. ``user-blocked``."""


ALLOW = Decision(True)


class Resolution(NamedTuple):
    """Result of role or group resolution for a login."""

    roles: List[str]
    """Role names stamped onto the session."""

    membership: Optional[Any] = None
    """The :class:`.DBMembership`, for the membership resolver."""

    group: Optional[Any] = None
    """The :class:`.DBGroup`, for the group resolver."""


class SessionView(NamedTuple):
    """What the gateway knows about the principal behind a session."""

    session_id: str
    session_handle: str
    account_id: str
    person_id: str
    roles: List[str]
    modified: datetime
    membership_id: Optional[str] = None
    organization_id: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None

    def to_payload(self) -> dict:
        """Render the session in the JSON:API shape the frontend expects."""
        relationships = {
            'account': {
                'links': {'related': f'/accounts/{self.account_id}'},
                'data': {'type': 'accounts', 'id': self.account_id}
            }
        }
        if self.membership_id:
            relationships['membership'] = {
                'links': {'related': f'/memberships/{self.membership_id}'},
                'data': {'type': 'memberships', 'id': self.membership_id}
            }
        if self.group_id:
            relationships['group'] = {
                'links': {'related': f'/groups/{self.group_id}'},
                'data': {'type': 'groups', 'id': self.group_id,
                         'name': self.group_name}
            }
        return {
            'links': {'self': '/sessions/current'},
            'data': {
                'type': 'sessions',
                'id': self.session_id,
                'attributes': {'roles': self.roles}
            },
            'relationships': relationships
        }
