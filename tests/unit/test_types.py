import pytest

from leadhub.exceptions import (
    AccessError,
    BadRequest,
    Conflict,
    Forbidden,
    LeadHubError,
    NotFound,
    Unauthenticated,
)
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.types import MembershipStatus, Role


@pytest.mark.unit
class TestEnums:
    def test_role_values(self) -> None:
        assert [r.value for r in Role] == ["OWNER", "ADMIN", "USER"]

    def test_status_values(self) -> None:
        assert {s.value for s in MembershipStatus} == {"pending", "active", "suspended"}

    def test_role_from_string(self) -> None:
        assert Role("ADMIN") is Role.ADMIN
        with pytest.raises(ValueError):
            Role("SUPERUSER")


@pytest.mark.unit
class TestAccessErrors:
    @pytest.mark.parametrize(
        ("error_cls", "status_code"),
        [
            (Unauthenticated, 401),
            (Forbidden, 403),
            (NotFound, 404),
            (Conflict, 409),
            (BadRequest, 400),
        ],
    )
    def test_status_codes(self, error_cls: type[AccessError], status_code: int) -> None:
        error = error_cls("nope")
        assert error.status_code == status_code
        assert error.message == "nope"
        assert isinstance(error, LeadHubError)


@pytest.mark.unit
class TestContexts:
    def test_principal_display_name(self) -> None:
        assert Principal(id="u1", email="a@example.com").display_name == "a@example.com"
        assert Principal(id="u1", email="a@example.com", name="Alex").display_name == "Alex"

    def test_tenant_context_is_immutable(self) -> None:
        ctx = TenantContext(
            user=Principal(id="u1", email="a@example.com"),
            membership_id="m1",
            role=Role.USER,
            tenant_id="t1",
            tenant_name="Acme",
            tenant_slug="acme",
        )
        assert ctx.user_id == "u1"
        with pytest.raises(AttributeError):
            ctx.role = Role.OWNER  # type: ignore[misc]
