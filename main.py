import logging
import os
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_collection, get_db, get_documents, serialize_doc
from errors import AuthError, ConflictError, NotFoundError, ValidationError, install_error_handlers, store_errors
from schemas import PublicUser
from security import create_access_token, decode_token, verify_password
from validation import (
    parse_object_id,
    validate_cart_add,
    validate_cart_update,
    validate_order_create,
    validate_order_item_create,
    validate_order_item_update,
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

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

Payload = Dict[str, Any]
HIDE_PASSWORD = {"password": 0}


# Dependency to get current user

def get_current_user(authorization: Optional[str] = Header(default=None), db: Database = Depends(get_db)):
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Not authenticated")
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token")
    try:
        obj_id = parse_object_id(user_id, "user")
    except ValidationError:
        raise AuthError("Invalid token")
    with store_errors("Failed to fetch user"):
        user = get_collection(db, "users").find_one({"_id": obj_id}, HIDE_PASSWORD)
    if not user:
        raise AuthError("User not found")
    return serialize_doc(user)


# Routes
@app.get("/")
def read_root():
    return {"message": "Storefront API"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth
@app.post("/signup", status_code=201)
def signup(payload: Payload = Body(...), db: Database = Depends(get_db)):
    user = validate_signup(payload)
    users = get_collection(db, "users")

    query: Dict[str, Any] = {"email": user.email}
    if user.username:
        query = {"$or": [{"email": user.email}, {"username": user.username}]}
    with store_errors("Failed to create user"):
        existing = users.find_one(query)
    if existing:
        if existing.get("email") == user.email:
            raise ConflictError("Email already registered", "email")
        raise ConflictError("Username already taken", "username")

    with store_errors("Failed to create user"):
        created = create_document(db, "users", user)
    logger.info("User signed up: %s", created["_id"])
    return {"message": "User successfully created", "user_id": str(created["_id"])}


@app.post("/signin")
def signin(payload: Payload = Body(...), db: Database = Depends(get_db)):
    email, password = validate_signin(payload)
    with store_errors("Internal server error"):
        user = get_collection(db, "users").find_one({"email": email})
    # same answer for unknown email and wrong password
    if not user or not verify_password(password, user.get("password", "")):
        logger.warning("Failed sign-in for %s", email)
        raise AuthError("Invalid email or password")
    token = create_access_token({"sub": str(user["_id"])})
    return {
        "message": "Login successful",
        "user": PublicUser.from_doc(user).model_dump(),
        "access_token": token,
        "token_type": "bearer",
    }


@app.get("/me")
def me(current_user: dict = Depends(get_current_user)):
    return current_user


@app.get("/checkpassword", response_class=PlainTextResponse)
def check_password(password: Optional[str] = None, confirmPassword: Optional[str] = None):
    if not password or not confirmPassword:
        return PlainTextResponse("400 - Bad Request: Missing password or confirmPassword", status_code=400)
    if password != confirmPassword:
        return PlainTextResponse("400 - Passwords do not match", status_code=400)
    return "200 - Passwords match"


# Users
@app.get("/users")
def list_users(db: Database = Depends(get_db)):
    with store_errors("Failed to fetch users"):
        users = get_documents(db, "users", projection=HIDE_PASSWORD)
    return {"message": "Users fetched successfully", "data": users}


@app.get("/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(user_id, "user")
    with store_errors("Failed to fetch user"):
        user = get_collection(db, "users").find_one({"_id": obj_id}, HIDE_PASSWORD)
    if not user:
        raise NotFoundError("User not found")
    return {"data": serialize_doc(user)}


@app.post("/users", status_code=201)
def create_user(payload: Payload = Body(...), db: Database = Depends(get_db)):
    user = validate_user_create(payload)
    with store_errors("Failed to create user"):
        if get_collection(db, "users").find_one({"email": user.email}):
            raise ConflictError("User already exists", "email")
        created = create_document(db, "users", user)
    data = serialize_doc(created)
    data.pop("password", None)
    return {"message": "User created successfully", "data": data}


@app.put("/users/{user_id}")
def update_user(user_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    obj_id = parse_object_id(user_id, "user")
    updates = validate_user_update(payload)
    users = get_collection(db, "users")

    with store_errors("Internal server error"):
        if "email" in updates and users.find_one({"email": updates["email"], "_id": {"$ne": obj_id}}):
            raise ConflictError("Email already exists", "email")
        user = users.find_one_and_update(
            {"_id": obj_id},
            {"$set": updates},
            projection=HIDE_PASSWORD,
            return_document=ReturnDocument.AFTER,
        )
    if not user:
        raise NotFoundError("User not found")
    return {"message": "User updated successfully", "user": serialize_doc(user)}


@app.delete("/users/{user_id}")
def delete_user(user_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(user_id, "user")
    with store_errors("Failed to delete user"):
        res = get_collection(db, "users").delete_one({"_id": obj_id})
    if res.deleted_count == 0:
        raise NotFoundError("User not found")
    logger.info("User deleted: %s", user_id)
    return {"message": "User deleted successfully"}


# Products
@app.get("/products")
def list_products(db: Database = Depends(get_db)):
    with store_errors("Failed to fetch products"):
        products = get_documents(db, "products")
    return {"message": "Products fetched successfully", "data": products}


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(product_id, "product")
    with store_errors("Failed to fetch product"):
        product = get_collection(db, "products").find_one({"_id": obj_id})
    if not product:
        raise NotFoundError("Product not found")
    return {"data": serialize_doc(product)}


@app.post("/products", status_code=201)
def create_product(payload: Payload = Body(...), db: Database = Depends(get_db)):
    product = validate_product_create(payload)
    with store_errors("Failed to create product"):
        created = create_document(db, "products", product)
    return {"message": "Product created successfully", "data": serialize_doc(created)}


@app.put("/products/{product_id}")
def update_product(product_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    obj_id = parse_object_id(product_id, "product")
    updates = validate_product_update(payload)
    with store_errors("Failed to update product"):
        res = get_collection(db, "products").update_one({"_id": obj_id}, {"$set": updates})
    if res.matched_count == 0:
        raise NotFoundError("Product not found")
    return {"message": "Product updated successfully", "modifiedCount": res.modified_count}


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(product_id, "product")
    with store_errors("Failed to delete product"):
        res = get_collection(db, "products").delete_one({"_id": obj_id})
    if res.deleted_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Product deleted: %s", product_id)
    return {"message": "Product deleted successfully"}


# Cart
#
# Rows are keyed by productId alone; with several rows for one product the
# first match is updated or deleted.
@app.get("/cart")
def get_cart(db: Database = Depends(get_db)):
    with store_errors("Failed to fetch cart items"):
        items = get_documents(db, "cart")
    return {"message": "Cart fetched successfully", "data": items}


@app.post("/cart", status_code=201)
def add_to_cart(payload: Payload = Body(...), db: Database = Depends(get_db)):
    item = validate_cart_add(payload)
    with store_errors("Failed to add item to cart"):
        created = create_document(db, "cart", item)
    return {"message": "Item added to cart successfully", "data": serialize_doc(created)}


@app.put("/cart/{product_id}")
def update_cart_item(product_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    updates = validate_cart_update(payload)
    with store_errors("Failed to update cart item"):
        res = get_collection(db, "cart").update_one({"productId": product_id}, {"$set": updates})
    if res.matched_count == 0:
        raise NotFoundError("Item not found in cart")
    return {"message": "Cart item updated successfully", "updated": res.modified_count}


@app.delete("/cart/{product_id}")
def delete_cart_item(product_id: str, db: Database = Depends(get_db)):
    with store_errors("Failed to delete cart item"):
        res = get_collection(db, "cart").delete_one({"productId": product_id})
    if res.deleted_count == 0:
        raise NotFoundError("Item not found in cart")
    return {"message": "Cart item deleted successfully", "deleted": res.deleted_count}


# Orders
@app.get("/orders")
def list_orders(userId: Optional[str] = None, db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if userId:
        query["userId"] = userId
    with store_errors("Failed to fetch orders"):
        orders = get_documents(db, "orders", query)
    return {"message": "Orders fetched successfully", "data": orders}


@app.get("/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(order_id, "order")
    with store_errors("Failed to fetch order"):
        order = get_collection(db, "orders").find_one({"_id": obj_id})
    if not order:
        raise NotFoundError("Order not found")
    return {"data": serialize_doc(order)}


@app.post("/orders", status_code=201)
def create_order(payload: Payload = Body(...), db: Database = Depends(get_db)):
    order = validate_order_create(payload)
    with store_errors("Failed to create order"):
        created = create_document(db, "orders", order)
    logger.info("Order created: %s for user %s", created["_id"], order.userId)
    return {"message": "Order created successfully", "data": serialize_doc(created)}


@app.put("/orders/{order_id}")
def update_order(order_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    obj_id = parse_object_id(order_id, "order")
    updates = validate_order_update(payload)
    with store_errors("Failed to update order"):
        res = get_collection(db, "orders").update_one({"_id": obj_id}, {"$set": updates})
    if res.matched_count == 0:
        raise NotFoundError("Order not found")
    return {"message": "Order updated successfully", "modifiedCount": res.modified_count}


@app.delete("/orders/{order_id}")
def delete_order(order_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(order_id, "order")
    with store_errors("Failed to delete order"):
        res = get_collection(db, "orders").delete_one({"_id": obj_id})
    if res.deleted_count == 0:
        raise NotFoundError("Order not found")
    logger.info("Order deleted: %s", order_id)
    return {"message": "Order deleted successfully"}


# Order items
@app.get("/order-items")
def list_order_items(db: Database = Depends(get_db)):
    with store_errors("Failed to fetch order items"):
        items = get_documents(db, "order_items")
    return {"message": "Order items fetched", "data": items}


@app.post("/order-items", status_code=201)
def create_order_item(payload: Payload = Body(...), db: Database = Depends(get_db)):
    item = validate_order_item_create(payload)
    with store_errors("Failed to create order item"):
        created = create_document(db, "order_items", item)
    return {"message": "Order item created successfully", "data": serialize_doc(created)}


@app.put("/order-items/{item_id}")
def update_order_item(item_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    obj_id = parse_object_id(item_id, "order item")
    updates = validate_order_item_update(payload)
    with store_errors("Failed to update order item"):
        res = get_collection(db, "order_items").update_one({"_id": obj_id}, {"$set": updates})
    if res.matched_count == 0:
        raise NotFoundError("Order item not found")
    return {"message": "Order item updated", "modifiedCount": res.modified_count}


@app.delete("/order-items/{item_id}")
def delete_order_item(item_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(item_id, "order item")
    with store_errors("Failed to delete order item"):
        res = get_collection(db, "order_items").delete_one({"_id": obj_id})
    if res.deleted_count == 0:
        raise NotFoundError("Order item not found")
    return {"message": "Order item deleted", "deletedCount": res.deleted_count}


# Reviews
@app.get("/reviews")
def list_reviews(productId: Optional[str] = None, db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if productId:
        query["productId"] = productId
    with store_errors("Failed to fetch reviews"):
        reviews = get_documents(db, "reviews", query)
    return {"message": "Reviews fetched successfully", "data": reviews}


@app.post("/reviews", status_code=201)
def create_review(payload: Payload = Body(...), db: Database = Depends(get_db)):
    review = validate_review_create(payload)
    with store_errors("Failed to add review"):
        created = create_document(db, "reviews", review)
    return {"message": "Review added successfully", "data": serialize_doc(created)}


@app.put("/reviews/{review_id}")
def update_review(review_id: str, payload: Payload = Body(...), db: Database = Depends(get_db)):
    obj_id = parse_object_id(review_id, "review")
    updates = validate_review_update(payload)
    with store_errors("Failed to update review"):
        res = get_collection(db, "reviews").update_one({"_id": obj_id}, {"$set": updates})
    if res.matched_count == 0:
        raise NotFoundError("Review not found")
    return {"message": "Review updated successfully", "modifiedCount": res.modified_count}


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Database = Depends(get_db)):
    obj_id = parse_object_id(review_id, "review")
    with store_errors("Failed to delete review"):
        res = get_collection(db, "reviews").delete_one({"_id": obj_id})
    if res.deleted_count == 0:
        raise NotFoundError("Review not found")
    return {"message": "Review deleted successfully"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
