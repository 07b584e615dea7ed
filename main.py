import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

load_dotenv()

import cart as carts
import orders
import reports
from auth import check_password, create_token, current_user, hash_password, is_admin, require_admin
from catalog import ProductFilter, paginate, refresh_product_rating
from database import connect, create_document, ensure_indexes, get_db, get_documents, get_or_404, oid, serialize, utcnow
from errors import Forbidden, Unauthenticated, ValidationFailed, install_error_handlers
from schemas import (
    AddToCartRequest,
    Category,
    CategoryPayload,
    LoginRequest,
    OrderUpdate,
    Product,
    ProductPayload,
    ProductUpdate,
    RegisterRequest,
    Review,
    ReviewPayload,
    ReviewUpdate,
    UpdateCartItemRequest,
    User,
    Wishlist,
    WishlistRequest,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.db = connect()
    ensure_indexes(app.state.db)
    yield
    app.state.db.client.close()


app = FastAPI(title="Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)


def ok(data, **extra) -> dict:
    return {"success": True, **extra, "data": data}


def ok_list(docs, **extra) -> dict:
    return ok([serialize(d) for d in docs], count=len(docs), **extra)


@app.get("/")
def root():
    return {"status": "ok", "service": "shop-backend"}


@app.get("/schema")
def schema_overview():
    return {
        "collections": ["user", "category", "product", "cart", "order", "review", "wishlist"],
    }


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    status = {
        "backend": "running",
        "database": "not-configured",
    }
    try:
        status["collections"] = db.list_collection_names()[:10]
        status["database"] = "connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        status["database"] = "error"
    return status


# Auth
def _auth_response(user_doc: dict) -> dict:
    return {"success": True, "token": create_token(user_doc), "data": serialize(user_doc)}


@app.post("/auth/register", status_code=201)
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    if db["user"].find_one({"email": payload.email}):
        raise ValidationFailed("User already exists")
    user = User(name=payload.name, email=payload.email, password_hash=hash_password(payload.password), role="user")
    user_id = create_document(db, "user", user)
    logger.info("Registered user %s", user_id)
    return _auth_response(db["user"].find_one({"_id": oid(user_id)}))


@app.post("/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not check_password(payload.password, user["password_hash"]):
        logger.warning("Failed login for %s", payload.email)
        raise Unauthenticated("Invalid credentials")
    return _auth_response(user)


@app.get("/auth/logout")
def logout():
    # tokens are stateless; the client drops its copy
    return ok({})


@app.get("/auth/me")
def me(user=Depends(current_user)):
    return ok(serialize(user))


# Users
@app.get("/users")
def list_users(db: Database = Depends(get_db), admin=Depends(require_admin)):
    return ok_list(get_documents(db, "user", {"role": "user"}))


@app.get("/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db), admin=Depends(require_admin)):
    return ok(serialize(get_or_404(db, "user", user_id, "user")))


# Categories
@app.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    return ok_list(get_documents(db, "category"))


@app.get("/categories/{category_id}")
def get_category(category_id: str, db: Database = Depends(get_db)):
    return ok(serialize(get_or_404(db, "category", category_id, "category")))


@app.post("/categories", status_code=201)
def create_category(payload: CategoryPayload, db: Database = Depends(get_db), admin=Depends(require_admin)):
    if db["category"].find_one({"name": payload.name}):
        raise ValidationFailed(f"Category {payload.name} already exists")
    category_id = create_document(db, "category", Category(name=payload.name, user_id=admin["id"]))
    return ok(serialize(db["category"].find_one({"_id": oid(category_id)})))


@app.patch("/categories/{category_id}")
def update_category(category_id: str, payload: CategoryPayload, db: Database = Depends(get_db), admin=Depends(require_admin)):
    category = get_or_404(db, "category", category_id, "category")
    clash = db["category"].find_one({"name": payload.name, "_id": {"$ne": category["_id"]}})
    if clash:
        raise ValidationFailed(f"Category {payload.name} already exists")
    db["category"].update_one({"_id": category["_id"]}, {"$set": {"name": payload.name, "updated_at": utcnow()}})
    return ok(serialize(db["category"].find_one({"_id": category["_id"]})))


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Database = Depends(get_db), admin=Depends(require_admin)):
    category = get_or_404(db, "category", category_id, "category")
    db["category"].delete_one({"_id": category["_id"]})
    return {"success": True, "message": "Category deleted"}


# Products
@app.get("/products")
def list_products(filters: ProductFilter = Depends(), page: int = 1, limit: int = 10, db: Database = Depends(get_db)):
    docs, pagination = paginate(db, "product", filters.to_query(), page, limit)
    return ok_list(docs, pagination=pagination)


@app.get("/products/category/{category_id}")
def list_products_by_category(category_id: str, page: int = 1, limit: int = 10, db: Database = Depends(get_db)):
    docs, pagination = paginate(db, "product", {"category_id": category_id}, page, limit)
    return ok_list(docs, pagination=pagination)


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return ok(serialize(get_or_404(db, "product", product_id, "product")))


@app.post("/products", status_code=201)
def create_product(payload: ProductPayload, db: Database = Depends(get_db), admin=Depends(require_admin)):
    get_or_404(db, "category", payload.category_id, "category")
    product = Product(**payload.model_dump(), user_id=admin["id"])
    product_id = create_document(db, "product", product)
    return ok(serialize(db["product"].find_one({"_id": oid(product_id)})))


@app.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db), admin=Depends(require_admin)):
    product = get_or_404(db, "product", product_id, "product")
    changes = payload.model_dump(exclude_unset=True)
    if "category_id" in changes:
        get_or_404(db, "category", changes["category_id"], "category")
    if changes:
        changes["updated_at"] = utcnow()
        db["product"].update_one({"_id": product["_id"]}, {"$set": changes})
    return ok(serialize(db["product"].find_one({"_id": product["_id"]})))


@app.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db), admin=Depends(require_admin)):
    product = get_or_404(db, "product", product_id, "product")
    db["product"].delete_one({"_id": product["_id"]})
    db["review"].delete_many({"product_id": product_id})
    return {"success": True, "message": "Product deleted"}


# Cart
@app.get("/cart")
def get_cart(db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(carts.get_cart(db, user["id"])))


@app.post("/cart")
def add_to_cart(payload: AddToCartRequest, db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(carts.add_item(db, user["id"], payload.product_id, payload.amount)))


@app.patch("/cart/{product_id}")
def update_cart_item(product_id: str, payload: UpdateCartItemRequest, db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(carts.update_item_amount(db, user["id"], product_id, payload.amount)))


@app.delete("/cart/{product_id}")
def remove_cart_item(product_id: str, db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(carts.remove_item(db, user["id"], product_id)))


# Orders
@app.post("/orders", status_code=201)
def create_order(db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(orders.create_order(db, user["id"])))


@app.get("/orders")
def list_orders(db: Database = Depends(get_db), admin=Depends(require_admin)):
    return ok_list(orders.list_all_orders(db))


@app.get("/orders/mine")
def list_my_orders(db: Database = Depends(get_db), user=Depends(current_user)):
    return ok_list(orders.list_user_orders(db, user["id"]))


@app.get("/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db), user=Depends(current_user)):
    return ok(serialize(orders.get_single_order(db, order_id, user)))


@app.patch("/orders/{order_id}")
def update_order(order_id: str, payload: OrderUpdate, db: Database = Depends(get_db), admin=Depends(require_admin)):
    return ok(serialize(orders.update_order(db, order_id, payload)))


# Reviews
def _own_review(db: Database, review_id: str, user: dict) -> dict:
    review = get_or_404(db, "review", review_id, "review")
    if not is_admin(user) and review["user_id"] != user["id"]:
        raise Forbidden("Not authorized to change this review")
    return review


@app.get("/reviews")
def list_reviews(db: Database = Depends(get_db)):
    return ok_list(get_documents(db, "review"))


@app.get("/reviews/{review_id}")
def get_review(review_id: str, db: Database = Depends(get_db)):
    return ok(serialize(get_or_404(db, "review", review_id, "review")))


@app.post("/reviews", status_code=201)
def create_review(payload: ReviewPayload, db: Database = Depends(get_db), user=Depends(current_user)):
    get_or_404(db, "product", payload.product_id, "product")
    if db["review"].find_one({"product_id": payload.product_id, "user_id": user["id"]}):
        raise ValidationFailed("Already submitted review for this product")
    review_id = create_document(db, "review", Review(**payload.model_dump(), user_id=user["id"]))
    refresh_product_rating(db, payload.product_id)
    return ok(serialize(db["review"].find_one({"_id": oid(review_id)})))


@app.patch("/reviews/{review_id}")
def update_review(review_id: str, payload: ReviewUpdate, db: Database = Depends(get_db), user=Depends(current_user)):
    review = _own_review(db, review_id, user)
    db["review"].update_one({"_id": review["_id"]}, {"$set": {**payload.model_dump(), "updated_at": utcnow()}})
    refresh_product_rating(db, review["product_id"])
    return ok(serialize(db["review"].find_one({"_id": review["_id"]})))


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Database = Depends(get_db), user=Depends(current_user)):
    review = _own_review(db, review_id, user)
    db["review"].delete_one({"_id": review["_id"]})
    refresh_product_rating(db, review["product_id"])
    return {"success": True, "message": "Review removed"}


# Wishlist
@app.get("/wishlist")
def get_wishlist(db: Database = Depends(get_db), user=Depends(current_user)):
    wishlist = db["wishlist"].find_one({"user_id": user["id"]})
    ids = wishlist["products"] if wishlist else []
    found = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": [oid(i) for i in ids]}})}
    return ok_list([found[i] for i in ids if i in found])


@app.post("/wishlist")
def add_to_wishlist(payload: WishlistRequest, db: Database = Depends(get_db), user=Depends(current_user)):
    get_or_404(db, "product", payload.product_id, "product")
    wishlist = db["wishlist"].find_one({"user_id": user["id"]})
    if not wishlist:
        create_document(db, "wishlist", Wishlist(products=[payload.product_id], user_id=user["id"]))
    elif payload.product_id not in wishlist["products"]:
        db["wishlist"].update_one(
            {"_id": wishlist["_id"]},
            {"$push": {"products": payload.product_id}, "$set": {"updated_at": utcnow()}},
        )
    return {"success": True, "message": "Product added to wishlist"}


@app.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, db: Database = Depends(get_db), user=Depends(current_user)):
    db["wishlist"].update_one(
        {"user_id": user["id"]},
        {"$pull": {"products": product_id}, "$set": {"updated_at": utcnow()}},
    )
    return {"success": True, "message": "Product removed from wishlist"}


# Dashboard
@app.get("/dashboard/stats")
def dashboard_stats(db: Database = Depends(get_db), admin=Depends(require_admin)):
    return ok(reports.build_dashboard(db))


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
