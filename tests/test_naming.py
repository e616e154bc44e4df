import pytest

from pg2zod.naming import qualified_name, schema_const_name, to_camel_case, to_pascal_case


@pytest.mark.parametrize(
    "name, expected",
    [
        ("users", "Users"),
        ("user_role", "UserRole"),
        ("HTTP_status", "HttpStatus"),
        ("order_items_2", "OrderItems2"),
    ],
)
def test_to_pascal_case(name, expected):
    assert to_pascal_case(name) == expected


def test_to_camel_case():
    assert to_camel_case("created_at") == "createdAt"
    assert to_camel_case("id") == "id"


def test_qualified_names():
    assert qualified_name("public", "users") == "PublicUsers"
    assert qualified_name("auth", "get_user", "View") == "AuthGetUserView"
    assert schema_const_name("public", "address", "Composite") == "PublicAddressCompositeSchema"
