"""Database models for identities, memberships and sessions."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, \
    UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from ..domain import ALLOWED, STATUSES

Base = declarative_base()

AccessStatus = Enum(*STATUSES, name='access_status')


class DBPerson(Base):  # type: ignore
    """A natural person, keyed by the identifier asserted by the provider."""

    __tablename__ = 'persons'

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    identifier = Column(String(255), nullable=False, unique=True)
    """The external user identifier (e.g. national register number)."""
    first_name = Column(String(255))
    family_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(64))
    status = Column(AccessStatus, nullable=False, default=ALLOWED)
    status_modified = Column(DateTime(timezone=True))

    accounts = relationship('DBAccount', back_populates='person')


class DBAccount(Base):  # type: ignore
    """An online account of a person at the identity provider."""

    __tablename__ = 'accounts'
    __table_args__ = (UniqueConstraint('person_id', 'account_name'),)

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    person_id = Column(ForeignKey('persons.id'), nullable=False, index=True)
    account_name = Column(String(255), nullable=False)
    """The external account identifier (``sub``)."""
    service_homepage = Column(String(255))
    created = Column(DateTime(timezone=True), nullable=False)

    person = relationship('DBPerson', back_populates='accounts')


class DBOrganization(Base):  # type: ignore
    """An organization, keyed by its organization code."""

    __tablename__ = 'organizations'

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    code = Column(String(32), nullable=False, unique=True)
    name = Column(String(255))
    status = Column(AccessStatus, nullable=False, default=ALLOWED)
    status_modified = Column(DateTime(timezone=True))


class DBRole(Base):  # type: ignore
    """
    A role in the static role catalogue.

    Roles are seeded when the application is provisioned; logins only look
    them up by ``notation``.
    """

    __tablename__ = 'roles'

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    notation = Column(String(255), nullable=False, unique=True)
    label = Column(String(255))


class DBMembership(Base):  # type: ignore
    """A person holding a role, optionally within an organization."""

    __tablename__ = 'memberships'
    # NULL organizations are distinct in SQL unique constraints, which is
    # why the natural key is also guarded by ``key``.
    __table_args__ = (
        UniqueConstraint('person_id', 'role_id', 'organization_id'),
    )

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    key = Column(String(255), nullable=False, unique=True)
    """``<person_id>|<role_id>|<organization_id or ''>``."""
    person_id = Column(ForeignKey('persons.id'), nullable=False, index=True)
    role_id = Column(ForeignKey('roles.id'), nullable=False)
    organization_id = Column(ForeignKey('organizations.id'), nullable=True)
    status = Column(AccessStatus, nullable=False, default=ALLOWED)
    status_modified = Column(DateTime(timezone=True))
    created = Column(DateTime(timezone=True), nullable=False)

    person = relationship('DBPerson')
    role = relationship('DBRole')
    organization = relationship('DBOrganization')


class DBGroup(Base):  # type: ignore
    """A coarse user group, used instead of role memberships."""

    __tablename__ = 'user_groups'

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, unique=True)


class DBGroupMember(Base):  # type: ignore
    """Persons belonging to a :class:`.DBGroup`."""

    __tablename__ = 'user_group_members'

    group_id = Column(ForeignKey('user_groups.id'), primary_key=True)
    person_id = Column(ForeignKey('persons.id'), primary_key=True)
    position = Column(Integer, nullable=False, default=0)

    group = relationship('DBGroup')


class DBSession(Base):  # type: ignore
    """A login session, bound to the session handle of the client."""

    __tablename__ = 'sessions'

    id = Column(String(36), primary_key=True)
    handle = Column(String(255), nullable=False, unique=True)
    account_id = Column(ForeignKey('accounts.id'), nullable=False, index=True)
    membership_id = Column(ForeignKey('memberships.id'), nullable=True)
    organization_id = Column(ForeignKey('organizations.id'), nullable=True)
    group_id = Column(ForeignKey('user_groups.id'), nullable=True)
    modified = Column(DateTime(timezone=True), nullable=False, index=True)

    account = relationship('DBAccount')
    membership = relationship('DBMembership')
    organization = relationship('DBOrganization')
    group = relationship('DBGroup')
    roles = relationship('DBSessionRole', cascade='all, delete-orphan',
                         order_by='DBSessionRole.position')


class DBSessionRole(Base):  # type: ignore
    """Role names attached to a :class:`.DBSession`."""

    __tablename__ = 'session_roles'

    session_id = Column(ForeignKey('sessions.id', ondelete='CASCADE'),
                        primary_key=True)
    position = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)


class DBLoginActivity(Base):  # type: ignore
    """The most recent login of a person."""

    __tablename__ = 'login_activities'

    id = Column(String(36), primary_key=True)
    uri = Column(String(255), nullable=False, unique=True)
    person_id = Column(ForeignKey('persons.id'), nullable=False, unique=True)
    started = Column(DateTime(timezone=True), nullable=False)
