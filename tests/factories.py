from auth import create_token, hash_password
from database import create_document, oid
from schemas import Category, Product, User


def make_user(db, email="jane@example.com", role="user", password="secret123"):
    user_id = create_document(db, "user", User(
        name=email.split("@")[0],
        email=email,
        password_hash=hash_password(password),
        role=role,
    ))
    return db["user"].find_one({"_id": oid(user_id)})


def auth_headers(user_doc):
    return {"Authorization": f"Bearer {create_token(user_doc)}"}


def make_category(db, name="Furniture", owner="admin"):
    return create_document(db, "category", Category(name=name, user_id=owner))


def make_product(db, name="Chair", price=250, category_id=None, inventory=15, images=None, **extra):
    product = Product(
        name=name,
        price=price,
        description=f"{name} description",
        images=images or [f"/uploads/{name.lower()}.jpeg"],
        category_id=category_id or make_category(db, name=f"{name} category"),
        company="ikea",
        inventory=inventory,
        user_id="admin",
        **extra,
    )
    return create_document(db, "product", product)
