"""
Request validation

Pure functions, one per resource operation. Each takes the decoded JSON body
and returns the normalized payload (a schema model for creates, a `$set`
dict for updates) or raises errors.ValidationError naming the bad field(s).

A field counts as present when the legacy clients would have sent a truthy
value: None, False, 0, 0.0 and "" are all treated as missing.
"""

import math
import re
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from database import utcnow
from errors import ValidationError
from schemas import CartItem, Order, OrderItem, Product, Review, User
from security import encode_password

PASSWORD_MIN_LENGTH = 8

OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")
EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
_INT_PREFIX_RE = re.compile(r"^\s*[+-]?\d+")
_FLOAT_PREFIX_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_INT_RE = re.compile(r"\s*[+-]?\d+\s*")

# BSON stores 64-bit integers
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

# never written through a $set
_PROTECTED = ("_id", "id")

M = TypeVar("M", bound=BaseModel)


def is_present(value: Any) -> bool:
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    return True


def parse_float(value: Any) -> Optional[float]:
    """Leading-number float parse: "149.99" -> 149.99, "12abc" -> 12.0, "abc" -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        match = _FLOAT_PREFIX_RE.match(value)
        if not match:
            return None
        result = float(match.group(0))
    else:
        return None
    return result if math.isfinite(result) else None


def parse_int(value: Any) -> Optional[int]:
    """Leading-digits int parse: "15" -> 15, 3.7 -> 3, "abc" -> None."""
    parsed = _leading_int(value)
    if parsed is None or not INT64_MIN <= parsed <= INT64_MAX:
        return None
    return parsed


def _leading_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _INT_PREFIX_RE.match(value)
        # longer than any 64-bit value
        if not match or len(match.group(0).strip()) > 21:
            return None
        return int(match.group(0))
    return None


def parse_object_id(value: str, label: str = "") -> ObjectId:
    if not isinstance(value, str) or not OBJECT_ID_RE.fullmatch(value):
        name = f"{label} ID" if label else "ID"
        raise ValidationError(f"Invalid {name} format", "InvalidId", ["id"])
    return ObjectId(value)


def _build(model: Type[M], data: Dict[str, Any]) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
        raise ValidationError(f"{field}: {first.get('msg')}", "InvalidField", [field])


def _require(payload: Dict[str, Any], fields: Tuple[str, ...], message: str) -> None:
    missing = [f for f in fields if not is_present(payload.get(f))]
    if missing:
        raise ValidationError(message, "MissingField", missing)


def _require_float(value: Any, field: str) -> float:
    parsed = parse_float(value)
    if parsed is None:
        raise ValidationError(f"{field} must be a number", "InvalidField", [field])
    return parsed


def _require_int(value: Any, field: str) -> int:
    parsed = parse_int(value)
    if parsed is None:
        raise ValidationError(f"{field} must be an integer", "InvalidField", [field])
    return parsed


def _rating(value: Any) -> int:
    rating = None
    if isinstance(value, bool):
        rating = None
    elif isinstance(value, int):
        rating = value
    elif isinstance(value, float) and value.is_integer():
        rating = int(value)
    elif isinstance(value, str) and _INT_RE.fullmatch(value):
        rating = parse_int(value)
    if rating is None:
        raise ValidationError("rating must be an integer", "InvalidField", ["rating"])
    if rating < 1 or rating > 5:
        raise ValidationError("rating must be between 1 and 5", "InvalidField", ["rating"])
    return rating


def _set_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in _PROTECTED}


def _check_password_length(password: Any) -> None:
    if isinstance(password, str) and password and len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            "PasswordTooShort",
            ["password"],
        )


def _check_email(email: Any) -> str:
    if not isinstance(email, str) or "@" not in email:
        raise ValidationError("Invalid email format", "InvalidEmail", ["email"])
    return email.lower()


# Auth

def validate_signup(payload: Dict[str, Any]) -> User:
    password = payload.get("password")
    # length first: a short password is reported whatever else is wrong
    _check_password_length(password)
    if not is_present(payload.get("email")) or not is_present(password):
        raise ValidationError("Email and password are required", "MissingCredentials", ["email", "password"])
    if not isinstance(password, str):
        raise ValidationError("password must be a string", "InvalidField", ["password"])
    email = _check_email(payload.get("email"))
    if password != payload.get("confirmPassword"):
        raise ValidationError("Passwords do not match", "PasswordMismatch", ["password", "confirmPassword"])

    data = _set_fields(payload)
    data.pop("confirmPassword", None)
    data["email"] = email
    data["password"] = encode_password(password)
    data["createdAt"] = utcnow()
    return _build(User, data)


def validate_signin(payload: Dict[str, Any]) -> Tuple[str, str]:
    email = payload.get("email")
    password = payload.get("password")
    if not is_present(email) or not is_present(password):
        raise ValidationError("Email and password are required", "MissingCredentials", ["email", "password"])
    if not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError("Email and password must be strings", "InvalidField", ["email", "password"])
    return email.lower(), password


# Users

def validate_user_create(payload: Dict[str, Any]) -> User:
    _require(payload, ("name", "email", "password"), "Name, email, and password are required")
    password = payload["password"]
    if not isinstance(password, str):
        raise ValidationError("password must be a string", "InvalidField", ["password"])
    _check_password_length(password)
    return _build(User, {
        "name": payload["name"],
        "email": _check_email(payload["email"]),
        "password": encode_password(password),
        "role": payload.get("role") or "customer",
        "createdAt": utcnow(),
    })


def validate_user_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    updates = _set_fields(payload)

    if "name" in updates:
        name = updates["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name cannot be empty", "InvalidField", ["name"])
        updates["name"] = name.strip()

    if "email" in updates:
        email = updates["email"]
        if not isinstance(email, str) or not EMAIL_RE.search(email):
            raise ValidationError("Valid email is required", "InvalidEmail", ["email"])
        updates["email"] = email.lower()

    if "password" in updates:
        password = updates["password"]
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required", "InvalidField", ["password"])
        _check_password_length(password)
        updates["password"] = encode_password(password)

    updates["updatedAt"] = utcnow()
    return updates


# Products

def validate_product_create(payload: Dict[str, Any]) -> Product:
    _require(payload, ("name", "price", "category"), "Name, price, and category are required")
    stock = parse_int(payload.get("stock"))
    return _build(Product, {
        "name": payload["name"],
        "description": payload.get("description") or "",
        "price": _require_float(payload["price"], "price"),
        "category": payload["category"],
        "imageUrl": payload.get("imageUrl") or "",
        "stock": stock or 0,
        "createdAt": utcnow(),
    })


def validate_product_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    updates = _set_fields(payload)
    if is_present(updates.get("price")):
        updates["price"] = _require_float(updates["price"], "price")
    if is_present(updates.get("stock")):
        updates["stock"] = _require_int(updates["stock"], "stock")
    updates = {k: v for k, v in updates.items() if v is not None and v != ""}
    if not updates:
        raise ValidationError("No valid fields to update", "MissingField")
    return updates


# Cart

def validate_cart_add(payload: Dict[str, Any]) -> CartItem:
    _require(payload, ("productId", "quantity"), "Missing productId or quantity")
    return _build(CartItem, _set_fields(payload))


def validate_cart_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    _require(payload, ("quantity",), "Missing quantity in request body")
    return {"quantity": payload["quantity"]}


# Orders

def _check_items(items: Any) -> None:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty array", "InvalidField", ["items"])


def validate_order_create(payload: Dict[str, Any]) -> Order:
    items = payload.get("items")
    if not is_present(payload.get("userId")) or not isinstance(items, list) or not items:
        raise ValidationError("userId and items array are required", "MissingField", ["userId", "items"])
    if payload.get("totalAmount") is None:
        raise ValidationError("totalAmount is required", "MissingField", ["totalAmount"])

    now = utcnow()
    data = {
        "userId": payload["userId"],
        "items": items,
        "totalAmount": _require_float(payload["totalAmount"], "totalAmount"),
        "deliveryData": payload.get("deliveryData") or {},
        "paymentMethod": payload.get("paymentMethod") or "pending",
        "createdAt": now,
        "updatedAt": now,
    }
    if payload.get("status") is not None:
        data["status"] = payload["status"]
    return _build(Order, data)


def validate_order_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    updates = _set_fields(payload)
    if "items" in updates:
        _check_items(updates["items"])
    if is_present(updates.get("totalAmount")):
        updates["totalAmount"] = _require_float(updates["totalAmount"], "totalAmount")
    updates["updatedAt"] = utcnow()
    return updates


def validate_order_item_create(payload: Dict[str, Any]) -> OrderItem:
    _require(
        payload,
        ("orderId", "productId", "quantity", "price"),
        "orderId, productId, quantity, and price are required",
    )
    return _build(OrderItem, {
        "orderId": payload["orderId"],
        "productId": payload["productId"],
        "quantity": _require_int(payload["quantity"], "quantity"),
        "price": _require_float(payload["price"], "price"),
        "createdAt": utcnow(),
    })


def validate_order_item_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    updates = _set_fields(payload)
    if is_present(updates.get("quantity")):
        updates["quantity"] = _require_int(updates["quantity"], "quantity")
    if is_present(updates.get("price")):
        updates["price"] = _require_float(updates["price"], "price")
    updates["updatedAt"] = utcnow()
    return updates


# Reviews

def validate_review_create(payload: Dict[str, Any]) -> Review:
    _require(payload, ("productId", "userId", "rating"), "productId, userId, and rating are required")
    now = utcnow()
    return _build(Review, {
        "productId": payload["productId"],
        "userId": payload["userId"],
        "rating": _rating(payload["rating"]),
        "comment": payload.get("comment") or "",
        "createdAt": now,
        "updatedAt": now,
    })


def validate_review_update(payload: Dict[str, Any]) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}
    if is_present(payload.get("rating")):
        updates["rating"] = _rating(payload["rating"])
    if "comment" in payload:
        updates["comment"] = payload["comment"]
    updates["updatedAt"] = utcnow()
    return updates
