import json

import pytest
from fastapi.testclient import TestClient

import main
import sessions

GIFT_WRAPS = [{"id": "w1", "name": "Classic Red", "price": 30, "type": "paper", "image": "🎁"}]


@pytest.fixture
def api(upstream):
    main.sessions.reset()
    main.app.dependency_overrides[main.get_backend] = lambda: upstream.client()
    client = TestClient(main.app)
    client.headers["X-Session-Id"] = "session-1"
    yield client
    main.app.dependency_overrides.clear()
    main.sessions.reset()


def add(api, id="p1", price=100, quantity=1):
    return api.post("/api/cart/items", json={"id": id, "name": "Red Roses", "price": price, "quantity": quantity})


def login(api, upstream):
    upstream.routes[("POST", "/api/auth/login")] = (200, {"user": {"id": "u1", "name": "Ravi"}, "token": "tok"})
    assert api.post("/api/auth/login", json={"email": "ravi@example.com", "password": "secret"}).status_code == 200


def test_root():
    assert TestClient(main.app).get("/").json() == {"message": "Gift Storefront API is running"}


def test_status_without_database(api):
    body = api.get("/test").json()
    assert body["database"] == "❌ Not Available"
    assert body["sessions"] == "in-memory"


def test_session_header_required(api):
    del api.headers["X-Session-Id"]
    assert api.get("/api/cart").status_code == 422


def test_cart_roundtrip(api):
    assert add(api, quantity=2).status_code == 201
    body = api.get("/api/cart").json()
    assert body["totalItems"] == 2
    assert body["pricing"] == {"subtotal": 200.0, "giftWrapPrice": 0.0, "deliveryFee": 0.0, "tax": 10.0, "total": 210.0}
    assert body["display"]["total"] == "₹210.00"
    assert body["amountToFreeDelivery"] == 0.0


def test_cart_shows_amount_to_free_delivery(api):
    add(api, price=150)
    assert api.get("/api/cart").json()["amountToFreeDelivery"] == 49.01


def test_sessions_are_isolated(api):
    add(api)
    other = api.get("/api/cart", headers={"X-Session-Id": "session-2"}).json()
    assert other["items"] == []


def test_decrement_to_zero_removes(api):
    add(api)
    body = api.patch("/api/cart/items/p1", json={"quantity": 0}).json()
    assert body["items"] == []


def test_remove_missing_item_is_noop(api):
    add(api)
    body = api.delete("/api/cart/items/missing").json()
    assert body["totalItems"] == 1


def test_gift_wrap_priced_into_cart(api, upstream):
    upstream.routes[("GET", "/api/gift-wraps")] = (200, GIFT_WRAPS)
    add(api, price=50)
    body = api.put("/api/cart/gift", json={"isGift": True, "giftWrapId": "w1"}).json()
    assert body["pricing"] == {"subtotal": 50.0, "giftWrapPrice": 30.0, "deliveryFee": 40.0, "tax": 4.0, "total": 124.0}


def test_gift_catalog_outage_prices_wrap_at_zero(api, upstream):
    upstream.routes[("GET", "/api/gift-wraps")] = (503, {"error": "down"})
    add(api, price=50)
    body = api.put("/api/cart/gift", json={"isGift": True, "giftWrapId": "w1"}).json()
    assert body["pricing"]["giftWrapPrice"] == 0.0


def test_unchecking_gift_clears_wrap(api):
    api.put("/api/cart/gift", json={"isGift": True, "giftWrapId": "w1", "occasionId": "o1"})
    body = api.put("/api/cart/gift", json={"isGift": False}).json()
    assert body["giftOptions"]["giftWrapId"] is None
    assert body["giftOptions"]["occasionId"] is None
    body = api.put("/api/cart/gift", json={"isGift": True}).json()
    assert body["giftOptions"]["giftWrapId"] is None


def test_gift_selection_while_off_is_user_error(api):
    response = api.put("/api/cart/gift", json={"recipientId": "r1"})
    assert response.status_code == 422
    assert response.json()["error"] == "GIFT_DISABLED"


def test_rejected_gift_update_changes_nothing(api):
    api.put("/api/cart/gift", json={"isGift": True, "recipientId": "r1"})
    response = api.put("/api/cart/gift", json={"giftWrapId": "w1", "greetingMessage": "x" * 201})
    assert response.status_code == 422
    assert response.json()["error"] == "MESSAGE_TOO_LONG"
    options = api.get("/api/cart").json()["giftOptions"]
    assert options["giftWrapId"] is None
    assert options["recipientId"] == "r1"


def test_rejected_gift_switch_on_changes_nothing(api):
    response = api.put("/api/cart/gift", json={"isGift": True, "giftWrapId": "w1", "greetingMessage": "x" * 201})
    assert response.status_code == 422
    options = api.get("/api/cart").json()["giftOptions"]
    assert options["isGift"] is False
    assert options["giftWrapId"] is None


def test_clear_cart(api):
    add(api)
    api.put("/api/cart/gift", json={"isGift": True})
    body = api.delete("/api/cart").json()
    assert body["items"] == []
    assert body["giftOptions"]["isGift"] is False


def test_pricing_quote():
    response = TestClient(main.app).post(
        "/api/pricing/quote",
        json={"items": [{"id": "p", "name": "Cake", "price": 50, "quantity": 1}], "giftWrapPrice": 30},
    )
    assert response.json() == {"subtotal": 50.0, "giftWrapPrice": 30.0, "deliveryFee": 40.0, "tax": 4.0, "total": 124.0}


def test_login_stores_token(api, upstream):
    login(api, upstream)
    upstream.routes[("GET", "/api/recipients")] = (200, {"recipients": [{"id": "r1", "name": "Meera", "phone": "98"}]})
    assert api.get("/api/recipients").json()["recipients"][0]["id"] == "r1"
    assert upstream.calls[-1].headers["Authorization"] == "Bearer tok"


def test_signup_failure_surfaces_message(api, upstream):
    upstream.routes[("POST", "/api/auth/signup")] = (400, {"error": "User already exists"})
    response = api.post("/api/auth/signup", json={"email": "ravi@example.com", "password": "secret"})
    assert response.status_code == 400
    assert response.json() == {"error": "User already exists"}


def test_upstream_server_error_is_bad_gateway(api, upstream):
    upstream.routes[("GET", "/api/products")] = (500, {})
    response = api.get("/api/products")
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to load products"}


def test_location_flow_saves_and_selects_address(api, upstream):
    login(api, upstream)
    upstream.routes[("GET", "/api/location/reverse-geocode")] = (
        200,
        {"parsed": {"street": "12 MG Road", "landmark": "", "city": "Bengaluru", "state": "Karnataka", "pincode": ""}},
    )
    upstream.routes[("POST", "/api/addresses")] = (
        201,
        {"address": {"id": "a9", "label": "Home", "street": "12 MG Road", "city": "Bengaluru", "state": "Karnataka", "pincode": "560001", "latitude": 12.97, "longitude": 77.59, "isDefault": True}},
    )

    view = api.post("/api/location/pick", json={"lat": 12.97, "lng": 77.59}).json()
    assert view["step"] == "select"
    assert view["draft"]["city"] == "Bengaluru"
    assert api.post("/api/location/proceed").json()["step"] == "form"

    response = api.post("/api/location/submit")
    assert response.status_code == 422
    assert response.json()["error"] == "INCOMPLETE_ADDRESS"
    assert ("POST", "/api/addresses") not in upstream.paths()

    api.patch("/api/location/draft", json={"pincode": "560001"})
    view = api.post("/api/location/submit").json()
    assert view["deliveryAddress"]["id"] == "a9"
    assert view["step"] == "select"
    sent = json.loads(upstream.calls[-1].content)
    assert sent["pincode"] == "560001"
    assert sent["isDefault"] is True


def test_location_geocode_outage_still_progresses(api, upstream):
    upstream.routes[("GET", "/api/location/reverse-geocode")] = (500, {})
    view = api.post("/api/location/pick", json={"lat": 28.61, "lng": 77.21}).json()
    assert view["draft"]["street"] == ""
    assert api.post("/api/location/proceed").json()["step"] == "form"


def test_proceed_without_pick_rejected(api):
    response = api.post("/api/location/proceed")
    assert response.status_code == 422
    assert response.json()["error"] == "MISSING_COORDINATES"


def test_guest_address_kept_in_session(api):
    response = api.post(
        "/api/addresses",
        json={"label": "Other", "street": "7 Lake View", "city": "Udaipur", "state": "RJ", "pincode": "313001", "latitude": 24.58, "longitude": 73.71},
    )
    assert response.status_code == 201
    address = response.json()["address"]
    assert address["label"] == "Other"
    assert api.get("/api/location").json()["deliveryAddress"]["id"] == address["id"]


def test_checkout_end_to_end(api, upstream):
    login(api, upstream)
    add(api, quantity=2)
    upstream.routes[("GET", "/api/addresses")] = (
        200,
        {"addresses": [{"id": "a1", "label": "Home", "street": "1 Main", "city": "Pune", "state": "MH", "pincode": "411001", "isDefault": True}]},
    )
    upstream.routes[("POST", "/api/orders")] = (201, {"order": {"id": "o1"}})

    response = api.post("/api/checkout", json={"paymentMethod": "CASH"})

    assert response.status_code == 201
    assert response.json()["order"]["id"] == "o1"
    sent = json.loads(upstream.calls[-1].content)
    assert sent["total"] == 210.0
    assert sent["paymentMethod"] == "CASH"
    assert api.get("/api/cart").json()["items"] == []


def test_checkout_gift_without_recipient(api, upstream):
    login(api, upstream)
    add(api)
    api.put("/api/cart/gift", json={"isGift": True})
    calls_before = len(upstream.calls)
    response = api.post("/api/checkout", json={"addressId": "a1"})
    assert response.status_code == 422
    assert response.json()["error"] == "MISSING_RECIPIENT"
    assert len(upstream.calls) == calls_before


def test_checkout_requires_login(api):
    add(api)
    response = api.post("/api/checkout", json={})
    assert response.status_code == 401
    assert response.json()["error"] == "auth_required"


def test_request_changes_are_written_back_once(api, monkeypatch):
    docs = {}

    async def find_document(collection, filter_dict):
        return docs.get(filter_dict["session_id"])

    async def upsert_document(collection, filter_dict, data):
        docs.setdefault("writes", []).append(data["cart"]["items"][0]["quantity"] if data["cart"]["items"] else 0)
        docs[filter_dict["session_id"]] = data

    monkeypatch.setattr(sessions, "find_document", find_document)
    monkeypatch.setattr(sessions, "upsert_document", upsert_document)
    monkeypatch.setattr(main.sessions, "persistent", True)

    add(api, quantity=2)
    api.get("/api/cart")

    assert docs["session-1"]["cart"]["items"][0]["quantity"] == 2
    assert docs["writes"] == [2]
