import logging
from decimal import Decimal
from typing import List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from address_flow import AddressCaptureFlow, Completing
from backend_client import BackendClient
from checkout import place_order
from database import get_db
from errors import BackendError, CheckoutError, ValidationError
from pricing import amount_to_free_delivery, compute_totals, format_price, gift_wrap_price
from schemas import (
    Address,
    AddressDraft,
    AddressLabel,
    CartItem,
    Coordinates,
    LoginRequest,
    Money,
    PaymentMethod,
    SignupRequest,
    WireModel,
)
from sessions import SessionRegistry, SessionState
from settings import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Gift Storefront API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions = SessionRegistry()
backend = BackendClient()

# ------------
# Dependencies
# ------------

async def get_session(x_session_id: str = Header(..., min_length=1)):
    session = await sessions.get(x_session_id)
    try:
        yield session
    finally:
        # Durable changes made by the request are written back once, here
        await sessions.save(session)


def get_backend() -> BackendClient:
    return backend


def authed(session: SessionState, client: BackendClient) -> BackendClient:
    return client.with_token(session.token)

# --------------
# Error handlers
# --------------

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    # Upstream client errors pass through; anything else is a bad gateway
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# ---------
# Root/Test
# ---------

@app.get("/")
def read_root():
    return {"message": "Gift Storefront API is running"}


@app.get("/test")
async def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.DATABASE_URL else "❌ Not Set",
        "database_name": settings.DATABASE_NAME,
        "upstream_url": settings.BACKEND_URL,
        "sessions": "persistent" if sessions.persistent else "in-memory",
        "collections": [],
    }
    db = await get_db()
    if db is not None:
        try:
            response["collections"] = (await db.list_collection_names())[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response

# ----
# Auth
# ----

def _sign_in(session: SessionState, data: dict) -> dict:
    session.token = data.get("token")
    session.user = data.get("user")
    return data


@app.post("/api/auth/signup", status_code=201)
async def signup(payload: SignupRequest, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    data = await client.signup(payload.to_wire(exclude_none=True))
    return _sign_in(session, data)


@app.post("/api/auth/login")
async def login(payload: LoginRequest, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    data = await client.login(payload.to_wire())
    return _sign_in(session, data)


@app.post("/api/auth/logout")
def logout(session: SessionState = Depends(get_session)):
    session.token = None
    session.user = None
    return {"ok": True}

# ---------------
# Catalog proxies
# ---------------

@app.get("/api/products")
async def list_products(category: Optional[str] = None, q: Optional[str] = None, client: BackendClient = Depends(get_backend)):
    params = {k: v for k, v in {"category": category, "q": q}.items() if v}
    return await client.list_products(params or None)


@app.get("/api/products/{product_id}")
async def get_product(product_id: str, client: BackendClient = Depends(get_backend)):
    return await client.get_product(product_id)


@app.get("/api/categories")
async def list_categories(type: Optional[str] = None, client: BackendClient = Depends(get_backend)):
    return await client.list_categories(type)


@app.get("/api/gift-wraps")
async def list_gift_wraps(client: BackendClient = Depends(get_backend)):
    return [w.to_wire() for w in await client.list_gift_wraps()]


@app.get("/api/occasions")
async def list_occasions(client: BackendClient = Depends(get_backend)):
    return [o.to_wire() for o in await client.list_occasions()]


@app.get("/api/recipients")
async def list_recipients(session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    recipients = await authed(session, client).list_recipients()
    return {"recipients": [r.to_wire() for r in recipients]}

# ----
# Cart
# ----

class QuantityUpdate(WireModel):
    quantity: int


class GiftOptionsUpdate(WireModel):
    is_gift: Optional[bool] = None
    gift_wrap_id: Optional[str] = None
    occasion_id: Optional[str] = None
    recipient_id: Optional[str] = None
    greeting_message: Optional[str] = None
    sender_name: Optional[str] = None
    show_sender_name: Optional[bool] = None


async def _wrap_price(session: SessionState, client: BackendClient) -> Decimal:
    options = session.cart.gift_options
    if not (options.is_gift and options.gift_wrap_id):
        return Decimal("0")
    try:
        wraps = await client.list_gift_wraps()
    except BackendError as e:
        logger.warning("Pricing without gift wrap, catalog unavailable: %s", e)
        return Decimal("0")
    return gift_wrap_price(options, wraps)


async def _cart_view(session: SessionState, client: BackendClient) -> dict:
    config = settings.pricing()
    totals = compute_totals(session.cart.items, await _wrap_price(session, client), config)
    state = session.cart.get()
    return {
        "items": [i.to_wire() for i in state.items],
        "totalItems": session.cart.get_total_items(),
        "giftOptions": state.gift_options.to_wire(),
        "pricing": totals.to_wire(),
        "display": {name: format_price(value) for name, value in totals.model_dump(by_alias=True).items()},
        "amountToFreeDelivery": float(amount_to_free_delivery(totals, config)),
    }


@app.get("/api/cart")
async def get_cart(session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    return await _cart_view(session, client)


@app.post("/api/cart/items", status_code=201)
async def add_cart_item(item: CartItem, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    session.cart.add_item(item)
    return await _cart_view(session, client)


@app.patch("/api/cart/items/{item_id}")
async def update_cart_item(item_id: str, payload: QuantityUpdate, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    session.cart.update_quantity(item_id, payload.quantity)
    return await _cart_view(session, client)


@app.delete("/api/cart/items/{item_id}")
async def remove_cart_item(item_id: str, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    session.cart.remove_item(item_id)
    return await _cart_view(session, client)


@app.delete("/api/cart")
async def clear_cart(session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    session.cart.clear_cart()
    return await _cart_view(session, client)


@app.put("/api/cart/gift")
async def update_gift_options(payload: GiftOptionsUpdate, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    session.gifts.apply(payload.model_dump(exclude_unset=True))
    return await _cart_view(session, client)

# -------------------------
# Pricing endpoints (quote)
# -------------------------

class QuoteRequest(WireModel):
    items: List[CartItem]
    gift_wrap_price: Money = Field(Decimal("0"), ge=0)


@app.post("/api/pricing/quote")
def pricing_quote(payload: QuoteRequest):
    return compute_totals(payload.items, payload.gift_wrap_price, settings.pricing()).to_wire()

# ----------------
# Location capture
# ----------------

class DraftUpdate(WireModel):
    label: Optional[AddressLabel] = None
    street: Optional[str] = None
    apartment: Optional[str] = None
    landmark: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class NewAddress(AddressDraft):
    latitude: float = Field(0, ge=-90, le=90)
    longitude: float = Field(0, ge=-180, le=180)


def _location_view(session: SessionState) -> dict:
    flow = session.address_flow
    state = flow.state
    return {
        "step": state.step,
        "coords": state.coords.to_wire() if state.coords else None,
        "draft": state.draft.to_wire(),
        "displayAddress": getattr(state, "display_address", ""),
        "error": flow.error,
        "deliveryAddress": session.delivery_address.to_wire() if session.delivery_address else None,
    }


async def _save_address(session: SessionState, client: BackendClient, flow: AddressCaptureFlow) -> Address:
    async def persist(body: dict) -> Address:
        if session.token:
            return await authed(session, client).create_address(body)
        # Guests keep the address in their session only
        return Address.model_validate({**body, "id": str(ObjectId())})

    try:
        address = await flow.submit(persist)
    except BackendError as e:
        flow.error = e.message
        raise
    session.delivery_address = address
    return address


@app.get("/api/location")
def get_location(session: SessionState = Depends(get_session)):
    return _location_view(session)


@app.post("/api/location/pick")
async def pick_location(payload: Coordinates, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    await session.address_flow.pick(payload.lat, payload.lng, client.reverse_geocode)
    return _location_view(session)


@app.post("/api/location/proceed")
def proceed_to_form(session: SessionState = Depends(get_session)):
    session.address_flow.proceed()
    return _location_view(session)


@app.post("/api/location/back")
def back_to_map(session: SessionState = Depends(get_session)):
    session.address_flow.back()
    return _location_view(session)


@app.patch("/api/location/draft")
def edit_draft(payload: DraftUpdate, session: SessionState = Depends(get_session)):
    session.address_flow.edit(**payload.model_dump(exclude_none=True))
    return _location_view(session)


@app.post("/api/location/submit", status_code=201)
async def submit_location(session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    await _save_address(session, client, session.address_flow)
    return _location_view(session)

# ---------
# Addresses
# ---------

@app.get("/api/addresses")
async def list_addresses(session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    addresses = await authed(session, client).list_addresses()
    return {"addresses": [a.to_wire() for a in addresses]}


@app.post("/api/addresses", status_code=201)
async def create_address(payload: NewAddress, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    """Save an address typed straight into the checkout form, skipping the map."""
    draft = AddressDraft(**payload.model_dump(exclude={"latitude", "longitude"}))
    flow = AddressCaptureFlow(Completing(coords=Coordinates(lat=payload.latitude, lng=payload.longitude), draft=draft))
    address = await _save_address(session, client, flow)
    return {"address": address.to_wire()}

# ---------------
# Orders Endpoints
# ---------------

class CheckoutRequest(WireModel):
    payment_method: PaymentMethod = PaymentMethod.CASH
    address_id: Optional[str] = None


@app.post("/api/checkout", status_code=201)
async def checkout(payload: CheckoutRequest, session: SessionState = Depends(get_session), client: BackendClient = Depends(get_backend)):
    return await place_order(session, client, payload.payment_method, payload.address_id, settings.pricing())


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
