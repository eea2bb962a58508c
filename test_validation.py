import pytest
from bson import ObjectId

from errors import ValidationError
from security import encode_password
from validation import (
    is_present,
    parse_float,
    parse_int,
    parse_object_id,
    validate_cart_add,
    validate_cart_update,
    validate_order_create,
    validate_order_item_create,
    validate_order_update,
    validate_product_create,
    validate_product_update,
    validate_review_create,
    validate_review_update,
    validate_signin,
    validate_signup,
    validate_user_create,
    validate_user_update,
)


def signup_payload(**overrides):
    payload = {"email": "A@B.com", "password": "12345678", "confirmPassword": "12345678"}
    payload.update(overrides)
    return payload


@pytest.mark.parametrize("value", [None, False, 0, 0.0, ""])
def test_falsy_values_are_absent(value):
    assert not is_present(value)


@pytest.mark.parametrize("value", ["0", [], {}, 1, -1, "x", True])
def test_truthy_values_are_present(value):
    assert is_present(value)


@pytest.mark.parametrize("raw, expected", [
    ("149.99", 149.99),
    (149.99, 149.99),
    (3, 3.0),
    ("12abc", 12.0),
    (" -2.5", -2.5),
    (".5", 0.5),
    ("abc", None),
    (10 ** 400, None),
    ("9" * 400, None),
    (True, None),
    (None, None),
    ([1], None),
])
def test_parse_float(raw, expected):
    assert parse_float(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("15", 15),
    (15, 15),
    (3.7, 3),
    ("7 units", 7),
    ("-4", -4),
    ("abc", None),
    (None, None),
    (False, None),
    (2 ** 63, None),
    ("9" * 5000, None),
    (-(2 ** 63), -(2 ** 63)),
])
def test_parse_int(raw, expected):
    assert parse_int(raw) == expected


def test_parse_object_id():
    oid = ObjectId()
    assert parse_object_id(str(oid)) == oid


@pytest.mark.parametrize("raw", ["123", "z" * 24, "a" * 25, "abcdefghijkl", "a" * 24 + "\n", " " + "a" * 24])
def test_parse_object_id_rejects_malformed(raw):
    with pytest.raises(ValidationError) as exc:
        parse_object_id(raw, "product")
    assert exc.value.status_code == 400
    assert exc.value.code == "InvalidId"
    assert "product" in exc.value.detail


# Sign-up

def test_signup_normalizes_email_and_encodes_password():
    user = validate_signup(signup_payload(name="Ann"))
    assert user.email == "a@b.com"
    assert user.password == encode_password("12345678")
    assert user.name == "Ann"
    assert "confirmPassword" not in user.model_dump()


def test_signup_keeps_extra_fields():
    user = validate_signup(signup_payload(phone="555-0100"))
    assert user.model_dump()["phone"] == "555-0100"


@pytest.mark.parametrize("overrides", [
    {},
    {"email": None},
    {"email": "no-at-sign"},
    {"confirmPassword": "other"},
])
def test_short_password_wins_over_other_errors(overrides):
    payload = signup_payload(password="short", **overrides)
    with pytest.raises(ValidationError) as exc:
        validate_signup(payload)
    assert exc.value.code == "PasswordTooShort"


@pytest.mark.parametrize("overrides", [{"email": ""}, {"password": None}, {"email": None, "password": None}])
def test_signup_missing_credentials(overrides):
    with pytest.raises(ValidationError) as exc:
        validate_signup(signup_payload(**overrides))
    assert exc.value.code == "MissingCredentials"


def test_signup_password_mismatch():
    with pytest.raises(ValidationError) as exc:
        validate_signup(signup_payload(confirmPassword="87654321"))
    assert exc.value.code == "PasswordMismatch"
    assert "confirmPassword" in exc.value.fields


def test_signup_invalid_email():
    with pytest.raises(ValidationError) as exc:
        validate_signup(signup_payload(email="nobody"))
    assert exc.value.code == "InvalidEmail"


def test_signin_lowercases_email():
    assert validate_signin({"email": "A@B.COM", "password": "x"}) == ("a@b.com", "x")


def test_signin_missing_credentials():
    with pytest.raises(ValidationError) as exc:
        validate_signin({"email": "a@b.com"})
    assert exc.value.code == "MissingCredentials"


# Users

def test_user_create_defaults_role():
    user = validate_user_create({"name": "Kai", "email": "Kai@Example.com", "password": "longenough"})
    assert user.role == "customer"
    assert user.email == "kai@example.com"


def test_user_create_requires_fields():
    with pytest.raises(ValidationError) as exc:
        validate_user_create({"name": "Kai", "email": "kai@example.com"})
    assert exc.value.fields == ("password",)


def test_user_update_normalizes_fields():
    updates = validate_user_update({"_id": "x", "name": "  Kai  ", "email": "New@Mail.com", "password": "newpassword"})
    assert "_id" not in updates
    assert updates["name"] == "Kai"
    assert updates["email"] == "new@mail.com"
    assert updates["password"] == encode_password("newpassword")
    assert "updatedAt" in updates


@pytest.mark.parametrize("payload", [{"name": "   "}, {"email": "bad@"}, {"password": "short"}])
def test_user_update_rejects_bad_fields(payload):
    with pytest.raises(ValidationError):
        validate_user_update(payload)


# Products

def test_product_create_parses_numbers():
    product = validate_product_create({"name": "Lamp", "price": "149.99", "category": "home", "stock": "15"})
    assert product.price == 149.99
    assert product.stock == 15
    assert product.description == ""
    assert product.imageUrl == ""


@pytest.mark.parametrize("stock", [None, "lots", ""])
def test_product_stock_defaults_to_zero(stock):
    product = validate_product_create({"name": "Lamp", "price": 10, "category": "home", "stock": stock})
    assert product.stock == 0


def test_product_negative_values_pass_through():
    product = validate_product_create({"name": "Lamp", "price": -1, "category": "home", "stock": -3})
    assert product.price == -1.0
    assert product.stock == -3


@pytest.mark.parametrize("missing", ["name", "price", "category"])
def test_product_create_requires_fields(missing):
    payload = {"name": "Lamp", "price": 10, "category": "home"}
    payload[missing] = None
    with pytest.raises(ValidationError) as exc:
        validate_product_create(payload)
    assert missing in exc.value.fields


def test_product_create_rejects_unparseable_price():
    with pytest.raises(ValidationError):
        validate_product_create({"name": "Lamp", "price": "cheap", "category": "home"})


def test_product_update_drops_empty_values():
    updates = validate_product_update({"price": "9.5", "stock": "2", "description": "", "imageUrl": None})
    assert updates == {"price": 9.5, "stock": 2}


def test_product_update_needs_a_field():
    with pytest.raises(ValidationError):
        validate_product_update({"description": "", "_id": "abc"})


# Cart

def test_cart_add_passes_extra_fields():
    item = validate_cart_add({"productId": "p1", "quantity": 2, "userId": "u1"})
    assert item.model_dump() == {"productId": "p1", "quantity": 2, "userId": "u1"}


@pytest.mark.parametrize("payload", [{"productId": "p1", "quantity": 0}, {"quantity": 1}, {"productId": "p1"}])
def test_cart_add_rejects_missing_fields(payload):
    with pytest.raises(ValidationError):
        validate_cart_add(payload)


def test_cart_update_requires_quantity():
    assert validate_cart_update({"quantity": 3, "other": 1}) == {"quantity": 3}
    with pytest.raises(ValidationError):
        validate_cart_update({"quantity": 0})


# Orders

def test_order_defaults():
    order = validate_order_create({"userId": "u1", "items": [{"productId": "p1", "quantity": 1}], "totalAmount": 0})
    assert order.totalAmount == 0.0
    assert order.status == "pending"
    assert order.deliveryData == {}
    assert order.paymentMethod == "pending"


@pytest.mark.parametrize("items", [[], "x", None, {"productId": "p1"}])
def test_order_rejects_bad_items(items):
    with pytest.raises(ValidationError):
        validate_order_create({"userId": "u1", "items": items, "totalAmount": 10})


def test_order_requires_total():
    with pytest.raises(ValidationError) as exc:
        validate_order_create({"userId": "u1", "items": [{"productId": "p1"}]})
    assert exc.value.fields == ("totalAmount",)


def test_order_update_accepts_any_status():
    updates = validate_order_update({"_id": "x", "status": "delivered", "totalAmount": "20"})
    assert updates["status"] == "delivered"
    assert updates["totalAmount"] == 20.0
    assert "_id" not in updates


def test_order_update_rejects_empty_items():
    with pytest.raises(ValidationError):
        validate_order_update({"items": []})


def test_order_item_create_parses_numbers():
    item = validate_order_item_create({"orderId": "o1", "productId": "p1", "quantity": "2", "price": "5.25"})
    assert item.quantity == 2
    assert item.price == 5.25


# Reviews

@pytest.mark.parametrize("rating", [1, 5, "3", 4.0])
def test_review_accepts_ratings_in_range(rating):
    review = validate_review_create({"productId": "p1", "userId": "u1", "rating": rating})
    assert 1 <= review.rating <= 5
    assert review.comment == ""


@pytest.mark.parametrize("rating", [6, -1, 4.5, "great", True, 10 ** 30, "9" * 5000])
def test_review_rejects_bad_ratings(rating):
    with pytest.raises(ValidationError) as exc:
        validate_review_create({"productId": "p1", "userId": "u1", "rating": rating})
    assert exc.value.fields == ("rating",)


def test_review_update_sets_comment_and_timestamp():
    updates = validate_review_update({"comment": "meh"})
    assert updates["comment"] == "meh"
    assert "rating" not in updates
    assert "updatedAt" in updates
