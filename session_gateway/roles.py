"""
Resolution of the role claim of a login into the roles of its session.

Two strategies are supported, selected with ``ROLE_RESOLVER``:

``membership``
    The role claim names a :class:`.DBRole` in the role catalogue. The person
    gets a :class:`.DBMembership` for that role (within the organization of
    the claim, if any) and the session carries the role notation.
``group``
    Persons belong to coarse :class:`.DBGroup`\\ s. The session carries the
    raw role claim prefixes plus the name of the person's first group.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm.session import Session

from . import config
from .claims import parse_role_notation
from .domain import ParsedIdentity, Resolution
from .exceptions import ConfigurationError
from .store import entities
from .store.models import DBGroup, DBGroupMember, DBOrganization, DBPerson, \
    DBRole

logger = logging.getLogger(__name__)

MEMBERSHIP = 'membership'
GROUP = 'group'


class RoleResolver(object):
    """Maps the identity of a login onto the roles of its session."""

    def initial_groups(self, db: Session) -> List[DBGroup]:
        """Groups that newly created persons join."""
        return []

    def resolve(self, db: Session, identity: ParsedIdentity, person: DBPerson,
                organization: Optional[DBOrganization] = None
                ) -> Optional[Resolution]:
        """
        Resolve the roles of ``person``.

        Returns
        -------
        :class:`.Resolution` or None
            None when the login carries no usable role.

        """
        raise NotImplementedError('Implement in subclass')


class MembershipRoleResolver(RoleResolver):
    """Resolves the first role claim against the role catalogue."""

    def __init__(self, pattern: str = config.ROLE_CLAIM_PATTERN) -> None:
        self.pattern = pattern

    def resolve(self, db: Session, identity: ParsedIdentity, person: DBPerson,
                organization: Optional[DBOrganization] = None
                ) -> Optional[Resolution]:
        notation = parse_role_notation(identity.role_claim, self.pattern)
        if notation is None:
            logger.info('No usable role claim for person %s', person.id)
            return None
        role = db.query(DBRole).filter(DBRole.notation == notation).first()
        if role is None:
            logger.info('Unknown role %s for person %s', notation, person.id)
            return None
        membership = entities.ensure_membership(db, person, role, organization)
        return Resolution(roles=[notation], membership=membership)


class GroupRoleResolver(RoleResolver):
    """Grants the first group of a person, given a role claim."""

    def __init__(self, allow_no_role_claim: bool = config.ALLOW_NO_ROLE_CLAIM,
                 default_group: str = config.DEFAULT_GROUP) -> None:
        self.allow_no_role_claim = allow_no_role_claim
        self.default_group = default_group

    def initial_groups(self, db: Session) -> List[DBGroup]:
        if not self.default_group:
            return []
        return [entities.ensure_group(db, self.default_group)]

    def resolve(self, db: Session, identity: ParsedIdentity, person: DBPerson,
                organization: Optional[DBOrganization] = None
                ) -> Optional[Resolution]:
        if not identity.role_claims and not self.allow_no_role_claim:
            logger.info('No role claim for person %s', person.id)
            return None
        group = db.query(DBGroup) \
            .join(DBGroupMember, DBGroupMember.group_id == DBGroup.id) \
            .filter(DBGroupMember.person_id == person.id) \
            .order_by(DBGroupMember.position, DBGroup.name) \
            .first()
        if group is None:
            logger.info('Person %s does not belong to any group', person.id)
            return None
        roles = [claim.split(':')[0] for claim in identity.role_claims]
        roles.append(group.name)
        return Resolution(roles=roles, group=group)


def get_resolver(name: str = config.ROLE_RESOLVER,
                 settings: Optional[Dict[str, Any]] = None) -> RoleResolver:
    """Get the role resolver configured as ``name``."""
    settings = settings if settings is not None else config.as_extra()
    if name == MEMBERSHIP:
        return MembershipRoleResolver(
            settings.get('ROLE_CLAIM_PATTERN', config.ROLE_CLAIM_PATTERN))
    if name == GROUP:
        return GroupRoleResolver(
            settings.get('ALLOW_NO_ROLE_CLAIM', config.ALLOW_NO_ROLE_CLAIM),
            settings.get('DEFAULT_GROUP', config.DEFAULT_GROUP))
    raise ConfigurationError(f'Unknown role resolver: {name}')
