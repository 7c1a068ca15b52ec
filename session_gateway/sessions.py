"""
Creates, looks up and revokes login sessions.

A session is bound to the session handle the client presents (the
``mu-session-id`` header by default). At any time a handle is bound to at
most one session: logging in with a handle replaces its previous session.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from . import config, gate
from .claims import ClaimParser
from .domain import SessionView
from .exceptions import AccessDenied, NotAuthorized, UnknownSession, \
    UpstreamAuthError, ValidationError
from .roles import RoleResolver, get_resolver
from .store import entities, util
from .store.login_activity import record_login_activity
from .store.models import DBAccount, DBGroup, DBMembership, \
    DBOrganization, DBPerson, DBSession, DBSessionRole

logger = logging.getLogger(__name__)

NO_ROLE = 'no-role'
INCOMPLETE_CLAIMS = 'incomplete-claims'


class SessionManager(object):
    """
    Orchestrates logins and session lookups against the store.

    Parameters
    ----------
    db : :class:`sqlalchemy.orm.Session`
    identity_provider : object
        Anything with an ``exchange(code) -> claims`` method, normally an
        :class:`.OpenIDClient`.
    defer : callable
        Scheduler for fire-and-forget mutations, see :class:`.Deferred`.
    resolver : :class:`.RoleResolver`
    parser : :class:`.ClaimParser`
    policy : str
        Organization policy of the access gate.
    admin_role : str
        Role required to purge sessions.

    """

    def __init__(self, db: Session, identity_provider: Any,
                 defer: Callable[..., None],
                 resolver: Optional[RoleResolver] = None,
                 parser: Optional[ClaimParser] = None,
                 policy: str = config.ORGANIZATION_POLICY,
                 admin_role: str = config.ADMIN_ROLE) -> None:
        self.db = db
        self.identity_provider = identity_provider
        self.defer = defer
        self.resolver = resolver or get_resolver()
        self.parser = parser or ClaimParser()
        self.policy = policy
        self.admin_role = admin_role

    def _delete_sessions(self, *criteria: Any) -> int:
        ids = [row.id for row in
               self.db.execute(select(DBSession.id).where(*criteria))]
        if not ids:
            return 0
        with util.transaction(self.db):
            self.db.query(DBSessionRole) \
                .filter(DBSessionRole.session_id.in_(ids)) \
                .delete(synchronize_session=False)
            self.db.query(DBSession) \
                .filter(DBSession.id.in_(ids)) \
                .delete(synchronize_session=False)
        return len(ids)

    def _insert_session(self, handle: str, account: DBAccount,
                        roles: List[str],
                        membership: Optional[DBMembership],
                        organization: Optional[DBOrganization],
                        group: Optional[DBGroup]) -> DBSession:
        session = DBSession(
            id=util.new_id(),
            handle=handle,
            account_id=account.id,
            membership_id=membership.id if membership else None,
            organization_id=organization.id if organization else None,
            group_id=group.id if group else None,
            modified=util.now(),
            roles=[DBSessionRole(position=i, name=name)
                   for i, name in enumerate(roles)]
        )
        with util.transaction(self.db):
            self.db.add(session)
        return session

    def _admit(self, person: DBPerson, membership: Optional[DBMembership],
               organization: Optional[DBOrganization]) -> None:
        """Carry an organization block into the membership, then gate."""
        if self.policy == gate.PROPAGATE and membership is not None \
                and entities.needs_block_propagation(membership, organization):
            logger.info('Organization %s is blocked, blocking membership %s',
                        organization.id, membership.id)
            entities.block_membership(self.db, membership)
        gate.check(person.status,
                   membership.status if membership else None,
                   organization.status if organization else None,
                   self.policy)

    def create_session(self, handle: Optional[str],
                       code: Optional[str]) -> SessionView:
        """
        Log in with an authorization code and bind a session to ``handle``.

        Raises
        ------
        :class:`.ValidationError`
            If the handle or the code is missing.
        :class:`.UpstreamAuthError`
            If the code could not be exchanged, or the claims lack the user
            or account identifier.
        :class:`.AccessDenied`
            With reason ``no-role`` when no role resolves, or the reason of
            the access gate when the principal is blocked.

        """
        if not handle:
            raise ValidationError('Session header is missing')
        if not code:
            raise ValidationError('Authorization code is missing')

        claims = self.identity_provider.exchange(code)
        self._delete_sessions(DBSession.handle == handle)

        identity = self.parser.parse(claims)
        if not identity.user_id or not identity.account_id:
            raise UpstreamAuthError(INCOMPLETE_CLAIMS,
                                    'Claims lack user or account identifier')

        person = entities.ensure_person(self.db, identity, self.defer,
                                        self.resolver.initial_groups(self.db))
        account = entities.ensure_account(self.db, person, identity)
        organization = None
        if identity.organization_code:
            organization = entities.ensure_organization(
                self.db, identity.organization_code,
                identity.organization_name, self.defer)

        resolution = self.resolver.resolve(self.db, identity, person,
                                           organization)
        if resolution is None:
            logger.info('Login of person %s refused: %s', person.id, NO_ROLE)
            raise AccessDenied(NO_ROLE)

        membership = resolution.membership
        self._admit(person, membership, organization)

        try:
            session = self._insert_session(handle, account, resolution.roles,
                                           membership, organization,
                                           resolution.group)
        except IntegrityError:
            # A concurrent login with the same handle got there first.
            logger.info('Replacing session concurrently bound to handle')
            self._delete_sessions(DBSession.handle == handle)
            session = self._insert_session(handle, account, resolution.roles,
                                           membership, organization,
                                           resolution.group)

        self.defer(record_login_activity, person.id)
        logger.info('Created session %s for account %s', session.id,
                    account.id)
        return SessionView(
            session_id=session.id,
            session_handle=handle,
            account_id=account.id,
            person_id=person.id,
            roles=list(resolution.roles),
            modified=session.modified,
            membership_id=membership.id if membership else None,
            organization_id=organization.id if organization else None,
            group_id=resolution.group.id if resolution.group else None,
            group_name=resolution.group.name if resolution.group else None
        )

    def destroy_session(self, handle: Optional[str]) -> None:
        """Log out: delete the session bound to ``handle``."""
        if not handle:
            raise ValidationError('Session header is missing')
        if not self._delete_sessions(DBSession.handle == handle):
            raise UnknownSession('Invalid session')
        logger.info('Deleted session bound to handle')

    def get_current_session(self, handle: Optional[str]) -> SessionView:
        """
        Get the principal behind the session bound to ``handle``.

        The access gate runs on every lookup, so a block placed after login
        invalidates existing sessions. Under the ``propagate`` policy a block
        of the organization is first carried into the membership.

        Raises
        ------
        :class:`.UnknownSession`
        :class:`.AccessDenied`

        """
        if not handle:
            raise ValidationError('Session header is missing')
        session = self.db.query(DBSession) \
            .filter(DBSession.handle == handle) \
            .first()
        if session is None:
            raise UnknownSession('Invalid session')

        account = session.account
        person = account.person
        membership = session.membership
        organization = membership.organization if membership \
            else session.organization
        self._admit(person, membership, organization)

        return SessionView(
            session_id=session.id,
            session_handle=session.handle,
            account_id=account.id,
            person_id=person.id,
            roles=[role.name for role in session.roles],
            modified=util.as_utc(session.modified),
            membership_id=membership.id if membership else None,
            organization_id=organization.id if organization else None,
            group_id=session.group.id if session.group else None,
            group_name=session.group.name if session.group else None
        )

    def purge_sessions(self, caller_handle: Optional[str],
                       person_id: Optional[str] = None,
                       before: Optional[datetime] = None) -> int:
        """
        Delete the sessions of a person, those older than ``before``, or all.

        Parameters
        ----------
        caller_handle : str
            Session handle of the caller, who must hold the admin role.
        person_id : str
        before : :class:`datetime`

        Returns
        -------
        int
            Number of deleted sessions.

        Raises
        ------
        :class:`.ValidationError`
            If both ``person_id`` and ``before`` are given, or ``person_id``
            is empty.
        :class:`.NotAuthorized`
            If the caller is not an admin.

        """
        if person_id is not None and before is not None:
            raise ValidationError('Provide either uuid or beforeDatetime')
        if person_id == '':
            raise ValidationError('Empty uuid')
        try:
            caller: Optional[SessionView] = \
                self.get_current_session(caller_handle)
        except (ValidationError, UnknownSession, AccessDenied) as e:
            logger.info('Purge refused: %s', e)
            caller = None
        if not gate.is_admin(caller, self.admin_role):
            raise NotAuthorized('Admin role required')

        criteria: Dict[str, Any] = {}
        if person_id is not None:
            criteria['person'] = DBSession.account_id.in_(
                select(DBAccount.id).where(DBAccount.person_id == person_id))
        elif before is not None:
            criteria['before'] = DBSession.modified < util.as_utc(before)
        count = self._delete_sessions(*criteria.values())
        logger.info('Purged %d sessions (%s)', count,
                    ', '.join(criteria) or 'all')
        return count
