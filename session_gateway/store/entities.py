"""
Reconcile parsed identity claims with the persons, accounts, organizations
and memberships in the store.

Each ``ensure_*`` function looks up an entity by its natural key and inserts
it when it is absent. Natural keys carry unique constraints; when a concurrent
login inserts the same entity first, the insert fails with an integrity error
and the entity that won is read back instead. Mutable attributes of existing
persons and organizations are refreshed through a deferred (fire-and-forget)
mutation so that the login does not wait for it.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from .. import config
from ..domain import ALLOWED, BLOCKED, STATUSES, ParsedIdentity
from ..exceptions import ValidationError
from . import util
from .models import DBAccount, DBGroup, DBGroupMember, DBMembership, \
    DBOrganization, DBPerson, DBRole

logger = logging.getLogger(__name__)

Defer = Callable[..., None]
"""``defer(func, *args)`` schedules ``func(db, *args)`` for later."""

E = TypeVar('E')


def _insert_if_absent(db: Session, lookup: Callable[[], Optional[E]],
                      build: Callable[[], E]) -> Tuple[E, bool]:
    """Insert the entity made by ``build`` unless ``lookup`` finds one."""
    existing = lookup()
    if existing is not None:
        return existing, False
    entity = build()
    try:
        with util.transaction(db):
            db.add(entity)
    except IntegrityError:
        existing = lookup()
        if existing is None:
            raise
        logger.info('Concurrent insert of %s %s; using the stored one',
                    type(existing).__name__, getattr(existing, 'id', ''))
        return existing, False
    return entity, True


def _defer_or_run(db: Session, defer: Optional[Defer],
                  func: Callable[..., Any], *args: Any) -> None:
    if defer is not None:
        defer(func, *args)
        return
    try:
        with util.transaction(db):
            func(db, *args)
    except Exception as e:
        logger.warning('%s failed: %s', func.__name__, e)


def _differs(stored: Optional[str], claimed: Optional[str]) -> bool:
    return (stored or None) != (claimed or None)


def person_outdated(person: DBPerson, identity: ParsedIdentity) -> bool:
    """Check whether any mutable person attribute disagrees with claims."""
    return (_differs(person.first_name, identity.first_name)
            or _differs(person.family_name, identity.family_name)
            or _differs(person.email, identity.email)
            or _differs(person.phone, identity.phone))


def refresh_person(db: Session, person_id: str,
                   identity: ParsedIdentity) -> None:
    """Replace names, e-mail and phone of a person by the claimed values."""
    person = db.get(DBPerson, person_id)
    if person is None:
        logger.warning('Cannot refresh unknown person %s', person_id)
        return
    person.first_name = identity.first_name
    person.family_name = identity.family_name
    person.email = identity.email
    person.phone = identity.phone
    logger.debug('Refreshed person %s', person_id)


def ensure_person(db: Session, identity: ParsedIdentity,
                  defer: Optional[Defer] = None,
                  groups: Iterable[DBGroup] = ()) -> DBPerson:
    """
    Get or create the person identified by ``identity.user_id``.

    Parameters
    ----------
    db : :class:`sqlalchemy.orm.Session`
    identity : :class:`.ParsedIdentity`
    defer : callable
        Scheduler for the refresh of an existing person's attributes. When
        omitted the refresh runs right away, errors being logged only.
    groups : iterable of :class:`.DBGroup`
        Groups a newly created person joins.

    Returns
    -------
    :class:`.DBPerson`

    """
    if not identity.user_id:
        raise ValidationError('User identifier is missing')

    def lookup() -> Optional[DBPerson]:
        return db.query(DBPerson) \
            .filter(DBPerson.identifier == identity.user_id) \
            .first()

    def build() -> DBPerson:
        person_id = util.new_id()
        return DBPerson(
            id=person_id,
            uri=util.resource_uri('persoon', person_id),
            identifier=identity.user_id,
            first_name=identity.first_name,
            family_name=identity.family_name,
            email=identity.email,
            phone=identity.phone,
            status=ALLOWED
        )

    person, created = _insert_if_absent(db, lookup, build)
    if created:
        logger.info('Created person %s', person.id)
        for position, group in enumerate(groups):
            add_to_group(db, person, group, position)
    elif person_outdated(person, identity):
        _defer_or_run(db, defer, refresh_person, person.id, identity)
    return person


def ensure_account(db: Session, person: DBPerson,
                   identity: ParsedIdentity) -> DBAccount:
    """Get or create the account of ``person`` named ``identity.account_id``.

    Accounts are never updated once created.
    """
    if not identity.account_id:
        raise ValidationError('Account identifier is missing')

    def lookup() -> Optional[DBAccount]:
        return db.query(DBAccount) \
            .filter(DBAccount.person_id == person.id) \
            .filter(DBAccount.account_name == identity.account_id) \
            .first()

    def build() -> DBAccount:
        account_id = util.new_id()
        return DBAccount(
            id=account_id,
            uri=util.resource_uri('account', account_id),
            person_id=person.id,
            account_name=identity.account_id,
            service_homepage=config.ACCOUNT_SERVICE_HOMEPAGE,
            created=util.now()
        )

    account, created = _insert_if_absent(db, lookup, build)
    if created:
        logger.info('Created account %s for person %s', account.id, person.id)
    return account


def refresh_organization(db: Session, organization_id: str,
                         name: str) -> None:
    """Replace the name of an organization."""
    organization = db.get(DBOrganization, organization_id)
    if organization is None:
        logger.warning('Cannot refresh unknown organization %s',
                       organization_id)
        return
    organization.name = name


def ensure_organization(db: Session, code: str, name: Optional[str] = None,
                        defer: Optional[Defer] = None) -> DBOrganization:
    """Get or create the organization with ``code``.

    A claimed ``name`` that differs from the stored one is refreshed through
    ``defer``; an absent name never clears the stored one.
    """
    if not code:
        raise ValidationError('Organization code is missing')

    def lookup() -> Optional[DBOrganization]:
        return db.query(DBOrganization) \
            .filter(DBOrganization.code == code) \
            .first()

    def build() -> DBOrganization:
        organization_id = util.new_id()
        return DBOrganization(
            id=organization_id,
            uri=util.resource_uri('organisatie', organization_id),
            code=code,
            name=name,
            status=ALLOWED
        )

    organization, created = _insert_if_absent(db, lookup, build)
    if created:
        logger.info('Created organization %s (%s)', organization.id, code)
    elif name and name != organization.name:
        _defer_or_run(db, defer, refresh_organization, organization.id, name)
    return organization


def membership_key(person: DBPerson, role: DBRole,
                   organization: Optional[DBOrganization] = None) -> str:
    """Natural key of a membership."""
    return '|'.join([person.id, role.id,
                     organization.id if organization is not None else ''])


def ensure_membership(db: Session, person: DBPerson, role: DBRole,
                      organization: Optional[DBOrganization] = None
                      ) -> DBMembership:
    """
    Get or create the membership of ``person`` in ``role``.

    New memberships take the current status of their organization; after
    that their status only changes through explicit transitions (see
    :func:`block_membership`).
    """
    key = membership_key(person, role, organization)

    def lookup() -> Optional[DBMembership]:
        return db.query(DBMembership) \
            .filter(DBMembership.key == key) \
            .first()

    def build() -> DBMembership:
        membership_id = util.new_id()
        status = organization.status if organization is not None else ALLOWED
        created = util.now()
        return DBMembership(
            id=membership_id,
            uri=util.resource_uri('lidmaatschap', membership_id),
            key=key,
            person_id=person.id,
            role_id=role.id,
            organization_id=organization.id if organization else None,
            status=status,
            status_modified=created,
            created=created
        )

    membership, created = _insert_if_absent(db, lookup, build)
    if created:
        logger.info('Created membership %s with status %s',
                    membership.id, membership.status)
    return membership


def add_to_group(db: Session, person: DBPerson, group: DBGroup,
                 position: int = 0) -> None:
    """Make ``person`` a member of ``group``, if not already."""
    exists = db.query(DBGroupMember) \
        .filter(DBGroupMember.group_id == group.id) \
        .filter(DBGroupMember.person_id == person.id) \
        .first()
    if exists:
        return
    try:
        with util.transaction(db):
            db.add(DBGroupMember(group_id=group.id, person_id=person.id,
                                 position=position))
    except IntegrityError:
        logger.info('Person %s already joined group %s', person.id, group.id)


def _set_status(db: Session, entity: Any, status: str,
                when: Optional[datetime] = None) -> None:
    if status not in STATUSES:
        raise ValidationError(f'Unknown status {status}')
    with util.transaction(db):
        entity.status = status
        entity.status_modified = when or util.now()
        db.add(entity)
    logger.info('%s %s is now %s', type(entity).__name__, entity.id, status)


def set_person_status(db: Session, person: DBPerson, status: str,
                      when: Optional[datetime] = None) -> None:
    """Allow or block a person."""
    _set_status(db, person, status, when)


def set_organization_status(db: Session, organization: DBOrganization,
                            status: str,
                            when: Optional[datetime] = None) -> None:
    """
    Allow or block an organization.

    Memberships in the organization are not touched here; a block reaches
    them through :func:`block_membership` when their sessions are looked up.
    """
    _set_status(db, organization, status, when)


def set_membership_status(db: Session, membership: DBMembership, status: str,
                          when: Optional[datetime] = None) -> None:
    """Allow or block a single membership, whatever its organization says."""
    _set_status(db, membership, status, when)


def block_membership(db: Session, membership: DBMembership,
                     when: Optional[datetime] = None) -> None:
    """Block a membership, e.g. because its organization got blocked."""
    set_membership_status(db, membership, BLOCKED, when)


def needs_block_propagation(membership: DBMembership,
                            organization: Optional[DBOrganization]) -> bool:
    """
    Check whether an organization block has yet to reach a membership.

    True when the organization is blocked, the membership is allowed, and the
    membership status has not been changed since the organization was
    blocked. A membership unblocked after its organization was blocked keeps
    its own status.
    """
    if organization is None or organization.status != BLOCKED:
        return False
    if membership.status != ALLOWED:
        return False
    membership_changed = util.as_utc(membership.status_modified)
    organization_changed = util.as_utc(organization.status_modified)
    if membership_changed is None:
        return True
    if organization_changed is None:
        return False
    return organization_changed >= membership_changed


def seed_roles(db: Session, notations: Iterable[str]) -> List[DBRole]:
    """Add roles to the catalogue, skipping those already there."""
    roles = []
    for notation in notations:
        def lookup() -> Optional[DBRole]:
            return db.query(DBRole).filter(DBRole.notation == notation).first()

        def build() -> DBRole:
            role_id = util.new_id()
            return DBRole(id=role_id, uri=util.resource_uri('rol', role_id),
                          notation=notation, label=notation)

        role, _ = _insert_if_absent(db, lookup, build)
        roles.append(role)
    return roles


def ensure_group(db: Session, name: str) -> DBGroup:
    """Get or create the group called ``name``."""
    def lookup() -> Optional[DBGroup]:
        return db.query(DBGroup).filter(DBGroup.name == name).first()

    def build() -> DBGroup:
        group_id = util.new_id()
        return DBGroup(id=group_id, uri=util.resource_uri('groep', group_id),
                       name=name)

    group, _ = _insert_if_absent(db, lookup, build)
    return group
