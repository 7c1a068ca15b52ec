"""Tests for :mod:`session_gateway.claims`."""

from unittest import TestCase

from hypothesis import given
from hypothesis import strategies as st

from .. import claims


class TestParseRoleNotation(TestCase):
    """Tests for :func:`.claims.parse_role_notation`."""

    def test_notation(self):
        self.assertEqual(claims.parse_role_notation('Prefix-RoleA:ORG000123'),
                         'RoleA')
        self.assertEqual(
            claims.parse_role_notation(
                'KaleidosGebruiker-Kaleidos_Overheidsorganisatie:OVO000617'),
            'Kaleidos_Overheidsorganisatie')

    def test_unparsable(self):
        """Claims without prefix or organization suffix yield None."""
        for value in ['RoleA', 'Prefix-RoleA', 'RoleA:ORG000123', '', None]:
            self.assertIsNone(claims.parse_role_notation(value), value)

    @given(st.text())
    def test_never_fails(self, value):
        notation = claims.parse_role_notation(value)
        self.assertTrue(notation is None or notation in value)


class TestOrganizationCode(TestCase):
    def test_embedded(self):
        self.assertEqual(claims.organization_code_from('Foo-Bar:OVO000617'),
                         'OVO000617')
        self.assertIsNone(claims.organization_code_from('OVO61'))
        self.assertIsNone(claims.organization_code_from(None))


class TestEmailAndPhone(TestCase):
    def test_email_suffix_is_stripped(self):
        self.assertEqual(claims.email_from_claim('test@example.com:OVO001827'),
                         'test@example.com')
        self.assertEqual(claims.email_from_claim('test@example.com'),
                         'test@example.com')
        self.assertIsNone(claims.email_from_claim(''))

    def test_phone_separators_are_removed(self):
        self.assertEqual(claims.sanitize_phone('+32 2/553.12 34'),
                         '+3225531234')
        self.assertIsNone(claims.sanitize_phone(' / '))

    @given(st.text())
    def test_sanitized_phone_has_no_separators(self, value):
        phone = claims.sanitize_phone(value)
        if phone is not None:
            for separator in '/ .':
                self.assertNotIn(separator, phone)


class TestClaimParser(TestCase):
    """Tests for :class:`.claims.ClaimParser`."""

    def setUp(self):
        self.parser = claims.ClaimParser()

    def test_parse(self):
        identity = self.parser.parse({
            'vo_id': 'u1',
            'sub': 'acct-1',
            'given_name': 'Ann',
            'family_name': 'Peeters',
            'vo_email': 'ann@example.com:ORG000123',
            'phone': '02 553 12 34',
            'dkb_kaleidos_rol_3d': ['Prefix-RoleA:ORG000123'],
            'vo_orgcode': 'ORG000123',
            'vo_orgnaam': 'Org'
        })
        self.assertEqual(identity.user_id, 'u1')
        self.assertEqual(identity.account_id, 'acct-1')
        self.assertEqual(identity.first_name, 'Ann')
        self.assertEqual(identity.family_name, 'Peeters')
        self.assertEqual(identity.email, 'ann@example.com')
        self.assertEqual(identity.phone, '025531234')
        self.assertEqual(identity.role_claim, 'Prefix-RoleA:ORG000123')
        self.assertEqual(identity.organization_code, 'ORG000123')
        self.assertEqual(identity.organization_name, 'Org')

    def test_organization_code_falls_back_to_role_claim(self):
        identity = self.parser.parse({
            'vo_id': 'u1', 'sub': 'a',
            'dkb_kaleidos_rol_3d': 'Prefix-RoleA:OVO000617'
        })
        self.assertEqual(identity.organization_code, 'OVO000617')
        self.assertEqual(identity.role_claims, ['Prefix-RoleA:OVO000617'])

    def test_first_of_many_role_claims(self):
        with self.assertLogs('session_gateway.claims', 'WARNING'):
            identity = self.parser.parse({
                'vo_id': 'u1', 'sub': 'a',
                'dkb_kaleidos_rol_3d': ['P-RoleA:ORG000123', 'P-RoleB:ORG000456']
            })
        self.assertEqual(identity.role_claim, 'P-RoleA:ORG000123')
        self.assertEqual(len(identity.role_claims), 2)

    def test_missing_claims(self):
        identity = self.parser.parse({})
        self.assertIsNone(identity.user_id)
        self.assertIsNone(identity.account_id)
        self.assertIsNone(identity.role_claim)
        self.assertIsNone(identity.organization_code)

    def test_configured_claim_names(self):
        parser = claims.parser_from_config({'USERID_CLAIM': 'uid',
                                            'ROLE_CLAIM': 'roles'})
        identity = parser.parse({'uid': 'u2', 'roles': ['P-R:ORG000001']})
        self.assertEqual(identity.user_id, 'u2')
        self.assertEqual(identity.organization_code, 'ORG000001')

    @given(st.dictionaries(
        st.sampled_from(['vo_id', 'sub', 'given_name', 'vo_email', 'phone',
                         'dkb_kaleidos_rol_3d', 'vo_orgcode', 'vo_orgnaam']),
        st.one_of(st.none(), st.text(), st.lists(st.text(), max_size=3),
                  st.integers())))
    def test_never_fails(self, raw):
        """Unparsable values become None instead of raising."""
        self.parser.parse(raw)
