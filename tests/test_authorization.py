import pytest

from bookloans.models.domain import STAFF_ROLES, Role
from bookloans.services.authorization import authorize, authorize_self_or
from bookloans.services.errors import Forbidden, Unauthorized
from bookloans.services.identity import Identity

ADMIN = Identity(user_id="a1", role=Role.ADMIN)
LIBRARIAN = Identity(user_id="l1", role=Role.LIBRARIAN)
READER = Identity(user_id="r1", role=Role.READER)


def test_missing_identity_is_unauthorized():
    with pytest.raises(Unauthorized):
        authorize(None, Role.ADMIN)
    with pytest.raises(Unauthorized):
        authorize_self_or(None, "r1", *STAFF_ROLES)


def test_role_outside_policy_is_forbidden():
    with pytest.raises(Forbidden):
        authorize(READER, *STAFF_ROLES)
    with pytest.raises(Forbidden):
        authorize(LIBRARIAN, Role.ADMIN)


def test_matching_role_returns_identity():
    assert authorize(ADMIN, Role.ADMIN) is ADMIN
    assert authorize(LIBRARIAN, *STAFF_ROLES) is LIBRARIAN


def test_owner_passes_regardless_of_role():
    assert authorize_self_or(READER, "r1", *STAFF_ROLES) is READER


@pytest.mark.parametrize("identity", [ADMIN, LIBRARIAN])
def test_staff_may_act_for_others(identity):
    assert authorize_self_or(identity, "r1", *STAFF_ROLES) is identity


def test_reader_may_not_act_for_others():
    with pytest.raises(Forbidden):
        authorize_self_or(READER, "someone-else", *STAFF_ROLES)
