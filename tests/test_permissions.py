import pytest

from backoffice.permissions import Capability, Role, has_capability, parse_role


@pytest.mark.parametrize("role", [Role.SUPER_ADMIN, Role.ADMIN])
def test_admins_can_do_everything(role):
    assert all(has_capability(role, cap) for cap in Capability)


def test_staff_sell_but_do_not_touch_stock():
    assert has_capability(Role.STAFF, Capability.CREATE_ORDERS)
    assert has_capability(Role.STAFF, Capability.VIEW_ORDERS)
    assert not has_capability(Role.STAFF, Capability.MANAGE_STOCK)
    assert not has_capability(Role.STAFF, Capability.VIEW_STOCK)


def test_customers_only_browse():
    allowed = {cap for cap in Capability if has_capability(Role.CUSTOMER, cap)}
    assert allowed == {Capability.VIEW_PRODUCTS}


def test_parse_role():
    assert parse_role("Admin") == Role.ADMIN
    assert parse_role(" staff ") == Role.STAFF
    assert parse_role(Role.CUSTOMER) is Role.CUSTOMER
    with pytest.raises(ValueError):
        parse_role("janitor")
    with pytest.raises(ValueError):
        parse_role(None)
