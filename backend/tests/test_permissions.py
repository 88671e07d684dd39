import pytest
from fastapi import HTTPException

from sessionauth.core.permissions import ensure_admin, ensure_authed, ensure_fresh_auth
from sessionauth.core.session_rotation import AuthContext

MEMBER = AuthContext(id="m", name="member", is_admin=False, access_updated=False)
ADMIN = AuthContext(id="a", name="admin", is_admin=True, access_updated=False)
ROTATED_ADMIN = AuthContext(id="a", name="admin", is_admin=True, access_updated=True)


def _status(check, user):
    with pytest.raises(HTTPException) as exc:
        check(user)
    return exc.value.status_code


@pytest.mark.parametrize("check", [ensure_authed, ensure_fresh_auth, ensure_admin])
def test_anonymous_rejected_everywhere(check):
    assert _status(check, None) == 401


def test_admin_check_is_stricter_than_authed():
    assert ensure_authed(MEMBER) is MEMBER
    assert _status(ensure_admin, MEMBER) == 401
    assert ensure_admin(ADMIN) is ADMIN


def test_fresh_auth_rejects_rotated_context():
    assert ensure_fresh_auth(MEMBER) is MEMBER
    assert ensure_authed(ROTATED_ADMIN) is ROTATED_ADMIN
    assert ensure_admin(ROTATED_ADMIN) is ROTATED_ADMIN
    assert _status(ensure_fresh_auth, ROTATED_ADMIN) == 401


def test_failure_does_not_reveal_reason():
    with pytest.raises(HTTPException) as missing:
        ensure_admin(None)
    with pytest.raises(HTTPException) as not_admin:
        ensure_admin(MEMBER)
    assert missing.value.detail == not_admin.value.detail
