"""Tests for :mod:`session_gateway.roles`."""

from unittest import TestCase

from .. import roles
from ..exceptions import ConfigurationError
from ..store import entities
from ..store.models import DBMembership
from ..store.tests.util import identity, temporary_db


class TestMembershipRoleResolver(TestCase):
    """Tests for :class:`.roles.MembershipRoleResolver`."""

    def setUp(self):
        self.db_context = temporary_db()
        self.db = self.db_context.__enter__()
        entities.seed_roles(self.db, ['RoleA'])
        self.resolver = roles.MembershipRoleResolver()

    def tearDown(self):
        self.db_context.__exit__(None, None, None)

    def test_resolves_role_and_membership(self):
        claims = identity()
        person = entities.ensure_person(self.db, claims)
        organization = entities.ensure_organization(self.db, 'ORG000123')
        resolution = self.resolver.resolve(self.db, claims, person,
                                           organization)
        self.assertEqual(resolution.roles, ['RoleA'])
        self.assertEqual(resolution.membership.person_id, person.id)
        self.assertEqual(resolution.membership.organization_id,
                         organization.id)
        self.assertIsNone(resolution.group)

    def test_unknown_role(self):
        claims = identity(role_claims=['Prefix-RoleZ:ORG000123'])
        person = entities.ensure_person(self.db, claims)
        self.assertIsNone(self.resolver.resolve(self.db, claims, person))
        self.assertEqual(self.db.query(DBMembership).count(), 0)

    def test_unparsable_or_missing_claim(self):
        for role_claims in [[], ['RoleA']]:
            claims = identity(role_claims=role_claims)
            person = entities.ensure_person(self.db, claims)
            self.assertIsNone(self.resolver.resolve(self.db, claims, person))


class TestGroupRoleResolver(TestCase):
    """Tests for :class:`.roles.GroupRoleResolver`."""

    def test_first_group(self):
        resolver = roles.GroupRoleResolver(default_group='users')
        claims = identity(role_claims=['Prefix-RoleA:ORG000123'])
        with temporary_db() as db:
            person = entities.ensure_person(db, claims,
                                            groups=resolver.initial_groups(db))
            resolution = resolver.resolve(db, claims, person)
            self.assertEqual(resolution.roles, ['Prefix-RoleA', 'users'])
            self.assertEqual(resolution.group.name, 'users')
            self.assertIsNone(resolution.membership)

    def test_role_claim_required(self):
        claims = identity(role_claims=[])
        with temporary_db() as db:
            strict = roles.GroupRoleResolver(default_group='users')
            person = entities.ensure_person(db, claims,
                                            groups=strict.initial_groups(db))
            self.assertIsNone(strict.resolve(db, claims, person))

            lenient = roles.GroupRoleResolver(allow_no_role_claim=True,
                                              default_group='users')
            self.assertEqual(lenient.resolve(db, claims, person).roles,
                             ['users'])

    def test_no_group(self):
        resolver = roles.GroupRoleResolver(default_group='')
        claims = identity()
        with temporary_db() as db:
            person = entities.ensure_person(db, claims,
                                            groups=resolver.initial_groups(db))
            self.assertIsNone(resolver.resolve(db, claims, person))


class TestGetResolver(TestCase):
    def test_get_resolver(self):
        self.assertIsInstance(roles.get_resolver('membership', {}),
                              roles.MembershipRoleResolver)
        resolver = roles.get_resolver('group', {'DEFAULT_GROUP': 'users'})
        self.assertIsInstance(resolver, roles.GroupRoleResolver)
        self.assertEqual(resolver.default_group, 'users')
        with self.assertRaises(ConfigurationError):
            roles.get_resolver('ldap', {})
