"""
Decides whether the principal behind a login or session gets access.

A blocked person is refused whatever the status of their membership or
organization. Then a blocked membership is refused. Organization status is
only read under the ``direct`` policy; under ``propagate`` an organization
block reaches the gate through the membership (see
:func:`.entities.block_membership`).
"""

import logging
from typing import Optional

from . import config
from .domain import ALLOW, BLOCKED, Decision, SessionView
from .exceptions import AccessDenied, ConfigurationError

logger = logging.getLogger(__name__)

PROPAGATE = 'propagate'
DIRECT = 'direct'
POLICIES = (PROPAGATE, DIRECT)

USER_BLOCKED = 'user-blocked'
MEMBERSHIP_BLOCKED = 'membership-blocked'
ORGANIZATION_BLOCKED = 'organization-blocked'


def evaluate(person_status: Optional[str],
             membership_status: Optional[str] = None,
             organization_status: Optional[str] = None,
             policy: str = config.ORGANIZATION_POLICY) -> Decision:
    """
    Evaluate the statuses linked to a principal.

    Parameters
    ----------
    person_status : str
    membership_status : str or None
        None when the login has no membership (group variant).
    organization_status : str or None
    policy : str
        Either ``propagate`` or ``direct``.

    Returns
    -------
    :class:`.Decision`

    """
    if policy not in POLICIES:
        raise ConfigurationError(f'Unknown organization policy: {policy}')
    if person_status == BLOCKED:
        return Decision(False, USER_BLOCKED)
    if membership_status == BLOCKED:
        return Decision(False, MEMBERSHIP_BLOCKED)
    if policy == DIRECT and organization_status == BLOCKED:
        return Decision(False, ORGANIZATION_BLOCKED)
    return ALLOW


def check(person_status: Optional[str],
          membership_status: Optional[str] = None,
          organization_status: Optional[str] = None,
          policy: str = config.ORGANIZATION_POLICY) -> None:
    """Like :func:`evaluate`, but raise :class:`.AccessDenied` on a block."""
    decision = evaluate(person_status, membership_status, organization_status,
                        policy)
    if not decision.allowed:
        logger.info('Access denied: %s', decision.reason)
        raise AccessDenied(decision.reason)


def is_admin(view: Optional[SessionView],
             admin_role: str = config.ADMIN_ROLE) -> bool:
    """
    Check whether a session may perform administrative operations.

    ``view`` must come from a gated session lookup (see
    :meth:`.SessionManager.get_current_session`), which refuses blocked
    principals.
    """
    if view is None:
        return False
    return admin_role in view.roles
