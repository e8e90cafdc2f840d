import pytest

from helpdesk.dependencies.auth import resolve_actor
from helpdesk.tickets.errors import TicketForbiddenError
from helpdesk.tickets.permissions import Actor, Role, assert_can_edit, can_edit


def test_missing_identity_defaults_to_anonymous_user():
    actor = resolve_actor(None, None)
    assert actor == Actor(id="anonymous", role=Role.USER)


def test_unknown_role_is_never_elevated():
    assert resolve_actor("mallory", "superuser").role is Role.USER
    assert resolve_actor("  ", "AGENT") == Actor(id="anonymous", role=Role.AGENT)


@pytest.mark.parametrize(
    ("role", "allowed"),
    [
        (Role.USER, {"title", "description"}),
        (Role.AGENT, {"title", "description", "status", "assign_to"}),
        (Role.ADMIN, {"title", "description", "status", "assign_to", "sla_hours"}),
    ],
)
def test_field_privileges_by_role(role, allowed):
    for field_name in ("title", "description", "status", "assign_to", "sla_hours"):
        assert can_edit(role, field_name) is (field_name in allowed)


def test_assert_can_edit_rejects_whole_patch():
    actor = Actor(id="user:1", role=Role.USER)
    with pytest.raises(TicketForbiddenError) as exc:
        assert_can_edit(actor, ["title", "status", "sla_hours"])

    assert exc.value.kind == "forbidden"
    assert "sla_hours" in str(exc.value)
    assert "status" in str(exc.value)
