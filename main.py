import hashlib
import os
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import bcrypt
import jwt
import requests
import structlog
from bson.errors import InvalidId
from bson.objectid import ObjectId
from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field

from database import db, create_document, get_documents
from logging_setup import configure_logging
from pricing import SHIPPING_FEE, compute_order_total, effective_original_price, order_item_pairs
from schemas import (
    CASH_ON_DELIVERY,
    MANUAL_PAYMENT,
    CustomerInfo,
    Order as OrderSchema,
    OrderItem,
    PaymentMethod,
    Product as ProductSchema,
    ShippingAddress,
    User as UserSchema,
)

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------- Utils -----------------------
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "30"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "storefront-products")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

security = HTTPBearer()


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    # convert datetimes
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def to_object_id(value: str, what: str) -> ObjectId:
    # a malformed id can't name an existing document
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"{what} not found")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


def create_token(user_id: str) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRES_DAYS)
    return jwt.encode({"id": user_id, "exp": exp}, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")


def session_payload(user: dict) -> dict:
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "is_admin": user.get("is_admin", False),
        "token": create_token(user["id"]),
    }


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    payload = decode_token(credentials.credentials)
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    try:
        user = db["user"].find_one({"_id": ObjectId(user_id)})
    except (InvalidId, TypeError):
        user = None
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return public_user(serialize_doc(user))


def require_admin(user=Depends(get_current_user)):
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Admin only")
    return user


# ----------------------- Models -----------------------
class SignupBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    # bcrypt only reads the first 72 bytes
    password: str = Field(..., min_length=1, max_length=72)


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class ProductBody(ProductSchema):
    pass


class OrderCreateBody(BaseModel):
    order_items: List[OrderItem] = []
    shipping_address: ShippingAddress
    customer_info: CustomerInfo
    payment_method: PaymentMethod = CASH_ON_DELIVERY
    transaction_id: Optional[str] = None
    total_price: float = Field(..., ge=0)


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
        "uploads": "✅ Configured" if CLOUDINARY_CLOUD_NAME else "⚠️ Missing CLOUDINARY_CLOUD_NAME",
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Users -----------------------
@app.post("/api/users/register", status_code=201)
def register(body: SignupBody):
    if db["user"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="User already exists")
    user = UserSchema(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        is_admin=False,
    )
    user_id = create_document("user", user)
    logger.info("user.registered", user_id=user_id)
    return session_payload({"id": user_id, "name": body.name, "email": body.email, "is_admin": False})


@app.post("/api/users/login")
def login(body: LoginBody):
    user = db["user"].find_one({"email": body.email})
    if not user or not verify_password(body.password, user.get("password_hash", "")):
        logger.info("user.login_failed", email=body.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return session_payload(serialize_doc(user))


@app.get("/api/users/profile")
def profile(user=Depends(get_current_user)):
    return {"id": user["id"], "name": user["name"], "email": user["email"], "is_admin": user.get("is_admin", False)}


@app.get("/api/users")
def list_users(user=Depends(require_admin)):
    return [public_user(serialize_doc(u)) for u in get_documents("user")]


# ----------------------- Products -----------------------
@app.get("/api/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None):
    filt = {}
    if q:
        filt["name"] = {"$regex": q, "$options": "i"}
    if category:
        filt["category"] = category
    return [serialize_doc(p) for p in get_documents("product", filt)]


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    item = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_doc(item)


@app.post("/api/products", status_code=201)
def create_product(body: ProductBody, user=Depends(require_admin)):
    data = body.model_dump(exclude={"original_price"})
    original = effective_original_price(body.price, body.original_price)
    if original is not None:
        data["original_price"] = original
    pid = create_document("product", data)
    logger.info("product.created", product_id=pid, admin_id=user["id"])
    return serialize_doc(db["product"].find_one({"_id": ObjectId(pid)}))


@app.put("/api/products/{product_id}")
def update_product(product_id: str, body: ProductBody, user=Depends(require_admin)):
    oid = to_object_id(product_id, "Product")
    update = body.model_dump(exclude={"original_price"})
    update["updated_at"] = datetime.now(timezone.utc)
    ops = {"$set": update}
    original = effective_original_price(body.price, body.original_price)
    if original is not None:
        update["original_price"] = original
    else:
        ops["$unset"] = {"original_price": ""}
    res = db["product"].update_one({"_id": oid}, ops)
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("product.updated", product_id=product_id, admin_id=user["id"])
    return serialize_doc(db["product"].find_one({"_id": oid}))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user=Depends(require_admin)):
    res = db["product"].delete_one({"_id": to_object_id(product_id, "Product")})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("product.deleted", product_id=product_id, admin_id=user["id"])
    return {"message": "Product removed"}


# ----------------------- Orders -----------------------
def with_user(order: dict) -> dict:
    try:
        owner = db["user"].find_one({"_id": ObjectId(order.get("user_id"))})
    except (InvalidId, TypeError):
        logger.debug("order.bad_user_id", order_id=order.get("id"), user_id=order.get("user_id"))
        owner = None
    if owner:
        order["user"] = {"id": str(owner["_id"]), "name": owner.get("name"), "email": owner.get("email")}
    else:
        order["user"] = None
    return order


def find_order(order_id: str) -> dict:
    doc = db["order"].find_one({"_id": to_object_id(order_id, "Order")})
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return doc


@app.post("/api/orders", status_code=201)
def create_order(body: OrderCreateBody, user=Depends(get_current_user)):
    if not body.order_items:
        raise HTTPException(status_code=400, detail="No order items")
    transaction_id = (body.transaction_id or "").strip()
    if body.payment_method == MANUAL_PAYMENT and not transaction_id:
        raise HTTPException(status_code=400, detail="Transaction ID is required for manual payment")

    expected = compute_order_total(order_item_pairs(body.order_items), SHIPPING_FEE)
    if abs(expected - body.total_price) > 0.005:
        raise HTTPException(status_code=400, detail="Order total does not match items and shipping")

    order = OrderSchema(
        user_id=user["id"],
        customer_info=body.customer_info,
        order_items=body.order_items,
        shipping_address=body.shipping_address,
        total_price=round(expected, 2),
        payment_method=body.payment_method,
        transaction_id=transaction_id if body.payment_method == MANUAL_PAYMENT else None,
        is_paid=False,
    )
    oid = create_document("order", order)
    logger.info("order.created", order_id=oid, user_id=user["id"], total=order.total_price)
    return serialize_doc(db["order"].find_one({"_id": ObjectId(oid)}))


@app.get("/api/orders/myorders")
def my_orders(user=Depends(get_current_user)):
    return [serialize_doc(o) for o in get_documents("order", {"user_id": user["id"]})]


@app.get("/api/orders")
def list_orders(user=Depends(require_admin)):
    return [with_user(serialize_doc(o)) for o in get_documents("order")]


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user)):
    order = serialize_doc(find_order(order_id))
    if not user.get("is_admin") and order.get("user_id") != user["id"]:
        raise HTTPException(status_code=403, detail="Not authorized to view this order")
    return with_user(order)


@app.put("/api/orders/{order_id}/deliver")
def mark_delivered(order_id: str, user=Depends(require_admin)):
    doc = find_order(order_id)
    now = datetime.now(timezone.utc)
    # delivery is when the admin confirms payment
    db["order"].update_one(
        {"_id": doc["_id"]},
        {"$set": {"is_delivered": True, "delivered_at": now, "is_paid": True, "paid_at": now, "updated_at": now}},
    )
    logger.info("order.delivered", order_id=order_id, admin_id=user["id"])
    return serialize_doc(db["order"].find_one({"_id": doc["_id"]}))


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, user=Depends(require_admin)):
    doc = find_order(order_id)
    db["order"].delete_one({"_id": doc["_id"]})
    logger.info("order.deleted", order_id=order_id, admin_id=user["id"])
    return {"message": "Order removed"}


# ----------------------- Upload -----------------------
def upload_to_asset_host(filename: str, content: bytes, content_type: str) -> str:
    if not (CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET):
        raise HTTPException(status_code=500, detail="Image upload not configured")
    timestamp = str(int(time.time()))
    to_sign = f"folder={CLOUDINARY_FOLDER}&timestamp={timestamp}{CLOUDINARY_API_SECRET}"
    signature = hashlib.sha1(to_sign.encode("utf-8")).hexdigest()
    try:
        r = requests.post(
            f"https://api.cloudinary.com/v1_1/{CLOUDINARY_CLOUD_NAME}/image/upload",
            data={
                "api_key": CLOUDINARY_API_KEY,
                "timestamp": timestamp,
                "folder": CLOUDINARY_FOLDER,
                "signature": signature,
            },
            files={"file": (filename, content, content_type)},
            timeout=30,
        )
    except requests.RequestException as e:
        logger.error("upload.transport_error", error=str(e))
        raise HTTPException(status_code=502, detail="Image upload failed")
    if r.status_code >= 300:
        logger.error("upload.rejected", status=r.status_code, body=r.text[:200])
        raise HTTPException(status_code=502, detail="Image upload failed")
    return r.json()["secure_url"]


@app.post("/api/upload")
def upload_image(image: Optional[UploadFile] = File(None), user=Depends(require_admin)):
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Not an image! Please upload an image.")
    content = image.file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Image is larger than 10MB")
    url = upload_to_asset_host(image.filename or "upload", content, image.content_type)
    logger.info("upload.stored", url=url, admin_id=user["id"])
    return {"url": url}


# ----------------------- Admin -----------------------
@app.get("/api/admin/stats")
def admin_stats(user=Depends(require_admin)):
    return {
        "users": db["user"].count_documents({}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
        "delivered_orders": db["order"].count_documents({"is_delivered": True}),
        "total_sales": sum(o.get("total_price", 0) for o in db["order"].find({"is_paid": True})),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
