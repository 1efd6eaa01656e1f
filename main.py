import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError

import database
import lifecycle
from auth import AdminGate, ValidationFailure, lookup_user, normalize_phone, register_user, require_phone
from catalog import browse, quote_link, search_categories, search_products, shop_categories, with_icon_kind
from config import settings
from estimator import STRUCTURES, estimate_building
from schemas import Category, OrderStatus, Product, User
from state import AppState, LocalStore
from sync import Poller, Snapshot

logger = logging.getLogger(__name__)

admin_gate = AdminGate(settings.admin_pin)
local_store = LocalStore(settings.local_store_path)
_states: Dict[str, AppState] = {}

products_snapshot = Snapshot.table(database.PRODUCTS, order="name")
categories_snapshot = Snapshot.table(database.CATEGORIES, order="name")
orders_snapshot = Snapshot.table(database.ORDERS, order="timestamp", ascending=False)

catalog_poller = Poller(settings.catalog_poll_seconds, [products_snapshot, categories_snapshot], name="catalog-poller")
orders_poller = Poller(settings.orders_poll_seconds, [orders_snapshot], name="orders-poller")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_indexes()
    except (database.DatabaseUnavailable, PyMongoError) as e:
        logger.warning("Skipping index setup: %s", e)
    catalog_poller.start()
    orders_poller.start()
    yield
    catalog_poller.stop(timeout=1)
    orders_poller.stop(timeout=1)


app = FastAPI(title="Bricxo Storefront API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(database.DatabaseUnavailable)
def database_unavailable(request, exc):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def _phone_key(phone: str) -> str:
    try:
        return require_phone(phone)
    except ValidationFailure as e:
        raise HTTPException(400, str(e))


def state_for(phone: str) -> AppState:
    """State for a phone that has just logged in or registered."""
    key = _phone_key(phone)
    if key not in _states:
        _states[key] = AppState(local_store.scoped(key))
    return _states[key]


def current_state(phone: str) -> Optional[AppState]:
    """Live or restorable session for ``phone``; unknown phones get nothing stored."""
    key = _phone_key(phone)
    state = _states.get(key)
    if state and state.is_authenticated:
        return state
    state = state or AppState(local_store.scoped(key))
    if state.restore(lookup_user) is None:
        return None
    _states[key] = state
    return state


def require_customer(phone: str) -> AppState:
    state = current_state(phone)
    if state is None:
        raise HTTPException(401, "Login required")
    return state


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> str:
    if not admin_gate.is_unlocked(x_admin_token):
        raise HTTPException(status_code=401, detail="Enter security PIN to access dashboard")
    return x_admin_token


# ============ Request models ==========
class PhoneRequest(BaseModel):
    phone: str


class RegisterRequest(BaseModel):
    phone: str
    name: str
    address: str


class SessionResponse(BaseModel):
    authenticated: bool
    needs_registration: bool = False
    user: Optional[User] = None
    theme: str = "light"


class CartChange(BaseModel):
    product_id: str


class ThemeRequest(BaseModel):
    theme: Optional[str] = None


class CheckoutRequest(BaseModel):
    phone: str


class PinRequest(BaseModel):
    pin: str


class StatusRequest(BaseModel):
    status: OrderStatus


class ProductCreate(BaseModel):
    name: str
    price: Optional[float] = None
    category: Optional[str] = None
    image: Optional[str] = None
    featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    image: Optional[str] = None
    featured: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None


class BuildingEstimateRequest(BaseModel):
    area: Optional[float] = None
    stage: str = "ground"


class StructureEstimateRequest(BaseModel):
    length: Optional[float] = None
    width: Optional[float] = None
    thickness: Optional[float] = None


def _session(state: AppState, needs_registration: bool = False) -> SessionResponse:
    return SessionResponse(
        authenticated=state.is_authenticated,
        needs_registration=needs_registration,
        user=state.user,
        theme=state.theme,
    )


def _cart_view(state: AppState) -> dict:
    return {
        "items": [line.model_dump() for line in state.cart.items()],
        "total_items": state.cart.total_item_count(),
        "distinct_items": state.cart.distinct_count(),
    }


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": "Bricxo Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "collections": [],
        "rows": {},
        "snapshots": {},
    }
    try:
        response["collections"] = database.collection_names()
        for table in (database.PRODUCTS, database.CATEGORIES, database.USERS, database.ORDERS):
            response["rows"][table] = database.count(table)
        response["database"] = "✅ Available"
    except database.DatabaseUnavailable:
        response["database"] = "⚠️  Not configured"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    for snap in (products_snapshot, categories_snapshot, orders_snapshot):
        response["snapshots"][snap.name] = {"version": snap.version, "age": snap.age()}
    return response


# ===================== Auth =====================
@app.post("/auth/lookup", response_model=SessionResponse)
def auth_lookup(payload: PhoneRequest):
    try:
        user = lookup_user(payload.phone)
    except ValidationFailure as e:
        raise HTTPException(400, str(e))
    if not user:
        return SessionResponse(authenticated=False, needs_registration=True)
    state = state_for(user.phone)
    state.login(user)
    return _session(state)


@app.post("/auth/register", response_model=SessionResponse)
def auth_register(payload: RegisterRequest):
    try:
        user = register_user(payload.phone, payload.name, payload.address)
    except ValidationFailure as e:
        raise HTTPException(400, str(e))
    state = state_for(user.phone)
    state.login(user)
    return _session(state)


@app.post("/auth/logout/{phone}", response_model=SessionResponse)
def auth_logout(phone: str):
    state = current_state(phone)
    if state is None:
        return SessionResponse(authenticated=False)
    state.logout()
    _states.pop(_phone_key(phone), None)
    return _session(state)


@app.get("/session/{phone}", response_model=SessionResponse)
def restore_session(phone: str):
    state = current_state(phone)
    if state is None:
        return SessionResponse(authenticated=False)
    return _session(state)


@app.put("/theme/{phone}", response_model=SessionResponse)
def set_theme(phone: str, payload: ThemeRequest):
    state = require_customer(phone)
    try:
        if payload.theme:
            state.set_theme(payload.theme)
        else:
            state.toggle_theme()
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _session(state)


# ===================== Catalog =====================
@app.get("/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, featured: bool = False):
    rows = products_snapshot.get(max_age=settings.catalog_poll_seconds)
    return browse(rows, query=q, category=category, featured_only=featured)


@app.get("/categories")
def list_categories(q: Optional[str] = None):
    rows = categories_snapshot.get(max_age=settings.catalog_poll_seconds)
    return with_icon_kind(search_categories(rows, q))


@app.get("/categories/shop")
def list_shop_categories():
    rows = categories_snapshot.get(max_age=settings.catalog_poll_seconds)
    return with_icon_kind(shop_categories(rows))


@app.get("/quote")
def get_quote_link(item: str):
    if not item.strip():
        raise HTTPException(400, "Item is required")
    return {"url": quote_link(item.strip(), settings.owner_phone)}


# ===================== Cart =====================
@app.get("/cart/{phone}")
def get_cart(phone: str):
    return _cart_view(require_customer(phone))


@app.post("/cart/{phone}/add")
def add_to_cart(phone: str, payload: CartChange):
    state = require_customer(phone)
    product = database.select_one(database.PRODUCTS, "_id", payload.product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    state.cart.add_or_increment(product)
    return _cart_view(state)


@app.post("/cart/{phone}/remove")
def remove_from_cart(phone: str, payload: CartChange):
    state = require_customer(phone)
    state.cart.decrement_or_remove(payload.product_id)
    return _cart_view(state)


# ===================== Orders =====================
@app.post("/orders/checkout")
def checkout(payload: CheckoutRequest):
    state = require_customer(payload.phone)
    try:
        order = lifecycle.place_order(state.user, state.cart)
    except lifecycle.EmptyCart as e:
        raise HTTPException(400, str(e))
    except lifecycle.OrderPlacementError as e:
        raise HTTPException(502, str(e))
    state.cart.clear()
    orders_snapshot.invalidate()
    return order.model_dump(mode="json")


@app.get("/orders")
def list_orders(phone: str):
    rows = orders_snapshot.get(max_age=settings.orders_poll_seconds)
    key = normalize_phone(phone)
    mine = [o for o in rows if o.get("user_phone") == key]
    return lifecycle.split_orders(mine)


@app.get("/orders/{order_id}/tracking")
def track_order(order_id: str):
    try:
        order = lifecycle.get_order(order_id)
    except lifecycle.OrderNotFound:
        raise HTTPException(404, "Order not found")
    return {
        "order": order,
        "current_step": lifecycle.step_index(order.get("status")),
        "steps": lifecycle.tracking_steps(order),
        "message": lifecycle.tracking_message(order),
    }


# ===================== Estimators =====================
@app.post("/estimate/building")
def estimate_whole_building(payload: BuildingEstimateRequest):
    result = estimate_building(payload.area, payload.stage)
    if result is None:
        raise HTTPException(400, "Enter a valid plot area and stage")
    return result


@app.post("/estimate/{structure}")
def estimate_structure(structure: str, payload: StructureEstimateRequest):
    calculator = STRUCTURES.get(structure)
    if calculator is None:
        raise HTTPException(404, "Unknown structure type")
    args = [payload.length, payload.width]
    if structure != "floor" and payload.thickness is not None:
        args.append(payload.thickness)
    result = calculator(*args)
    if result is None:
        raise HTTPException(400, "Enter valid dimensions")
    return result


# ===================== Admin =====================
@app.post("/admin/login")
def admin_login(payload: PinRequest):
    token = admin_gate.unlock(payload.pin)
    if not token:
        raise HTTPException(401, "Invalid PIN")
    return {"token": token}


@app.post("/admin/logout")
def admin_logout(token: str = Depends(require_admin)):
    admin_gate.lock(token)
    return {"locked": True}


@app.get("/admin/dashboard")
def admin_dashboard(token: str = Depends(require_admin)):
    orders = orders_snapshot.get(max_age=settings.orders_poll_seconds)
    products = products_snapshot.get(max_age=settings.orders_poll_seconds)
    return lifecycle.dashboard_stats(orders, products)


@app.get("/admin/orders")
def admin_orders(view: str = "active", token: str = Depends(require_admin)):
    if view not in ("active", "history"):
        raise HTTPException(400, "view must be active or history")
    rows = orders_snapshot.get(max_age=settings.orders_poll_seconds)
    delivered = OrderStatus.delivered.value
    if view == "active":
        rows = [o for o in rows if o.get("status") != delivered]
    else:
        rows = [o for o in rows if o.get("status") == delivered]
    return [{**o, "next_action": lifecycle.next_action(o.get("status"))} for o in rows]


@app.post("/admin/orders/{order_id}/advance")
def admin_advance_order(order_id: str, token: str = Depends(require_admin)):
    try:
        order = lifecycle.advance(order_id)
    except lifecycle.OrderNotFound:
        raise HTTPException(404, "Order not found")
    except lifecycle.TransitionError as e:
        raise HTTPException(409, str(e))
    orders_snapshot.patch("id", order_id, {"status": order["status"]})
    return order


@app.put("/admin/orders/{order_id}/status")
def admin_set_order_status(order_id: str, payload: StatusRequest, token: str = Depends(require_admin)):
    orders_snapshot.patch("id", order_id, {"status": payload.status.value})
    try:
        order = lifecycle.set_status(order_id, payload.status)
    except lifecycle.OrderNotFound:
        orders_snapshot.invalidate()
        raise HTTPException(404, "Order not found")
    return order


@app.get("/admin/products")
def admin_products(q: Optional[str] = None, token: str = Depends(require_admin)):
    rows = products_snapshot.get(max_age=settings.orders_poll_seconds)
    return search_products(rows, q)


@app.post("/admin/products")
def create_product(payload: ProductCreate, token: str = Depends(require_admin)):
    product = Product(**payload.model_dump())
    product_id = database.insert(database.PRODUCTS, [product])[0]
    products_snapshot.invalidate()
    return {"_id": product_id}


@app.put("/admin/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, token: str = Depends(require_admin)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(400, "No changes supplied")
    ok = database.update(database.PRODUCTS, changes, "_id", product_id)
    if not ok:
        raise HTTPException(404, "Product not found")
    products_snapshot.invalidate()
    return {"updated": True}


@app.delete("/admin/products/{product_id}")
def delete_product(product_id: str, token: str = Depends(require_admin)):
    products_snapshot.drop("_id", product_id)
    ok = database.delete(database.PRODUCTS, "_id", product_id)
    if not ok:
        raise HTTPException(404, "Product not found")
    return {"deleted": True}


@app.get("/admin/categories")
def admin_categories(q: Optional[str] = None, token: str = Depends(require_admin)):
    rows = categories_snapshot.get(max_age=settings.orders_poll_seconds)
    return with_icon_kind(search_categories(rows, q))


@app.post("/admin/categories")
def create_category(payload: CategoryCreate, token: str = Depends(require_admin)):
    cat = Category(**payload.model_dump(exclude_none=True))
    cat_id = database.insert(database.CATEGORIES, [cat])[0]
    categories_snapshot.invalidate()
    return {"_id": cat_id}


@app.put("/admin/categories/{category_id}")
def update_category(category_id: str, payload: CategoryCreate, token: str = Depends(require_admin)):
    ok = database.update(database.CATEGORIES, payload.model_dump(exclude_none=True), "_id", category_id)
    if not ok:
        raise HTTPException(404, "Category not found")
    categories_snapshot.invalidate()
    return {"updated": True}


@app.delete("/admin/categories/{category_id}")
def remove_category(category_id: str, token: str = Depends(require_admin)):
    categories_snapshot.drop("_id", category_id)
    ok = database.delete(database.CATEGORIES, "_id", category_id)
    if not ok:
        raise HTTPException(404, "Category not found")
    return {"deleted": True}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
