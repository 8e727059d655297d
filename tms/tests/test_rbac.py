"""
Tests for token verification and role extraction.
"""
from datetime import timedelta

import pytest

from tms.errors import ErrorCode, ForbiddenError, UnauthorizedError
from tms.security.rbac import AuthContext, context_from_payload, decode_token, ensure_self_or_staff, extract_roles
from tms.tests.conftest import make_token


class TestExtractRoles:

    def test_single_role_claim(self):
        assert extract_roles({"role": "Teacher"}) == frozenset({"teacher"})

    def test_roles_list_claim(self):
        assert extract_roles({"roles": ["student", "admin"]}) == frozenset({"student", "admin"})

    def test_keycloak_realm_access(self):
        payload = {"realm_access": {"roles": ["offline_access", "student"]}}
        assert extract_roles(payload) == frozenset({"student"})

    def test_unknown_roles_are_ignored(self):
        assert extract_roles({"roles": ["superuser"]}) == frozenset()
        assert extract_roles({}) == frozenset()


class TestDecodeToken:

    def test_round_trip_claims(self):
        context = context_from_payload(decode_token(make_token("learner-7", "student")))
        assert context.user_id == "learner-7"
        assert context.email == "learner-7@example.com"
        assert context.roles == frozenset({"student"})
        assert context.is_staff is False

    def test_expired(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            decode_token(make_token("learner-7", expires_in=timedelta(seconds=-1)))
        assert exc_info.value.code == ErrorCode.AUTH_EXPIRED

    def test_garbage(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            decode_token("not-a-jwt")
        assert exc_info.value.code == ErrorCode.AUTH_INVALID

    def test_missing_subject(self):
        with pytest.raises(UnauthorizedError):
            context_from_payload({"role": "student"})


class TestOwnership:

    def test_self_access(self):
        ensure_self_or_staff(AuthContext(user_id="a", roles=frozenset({"student"})), "a")

    def test_staff_access(self):
        ensure_self_or_staff(AuthContext(user_id="t", roles=frozenset({"teacher"})), "a")

    def test_other_learner(self):
        with pytest.raises(ForbiddenError) as exc_info:
            ensure_self_or_staff(AuthContext(user_id="b", roles=frozenset({"student"})), "a")
        assert exc_info.value.code == ErrorCode.OWNERSHIP_VIOLATION
