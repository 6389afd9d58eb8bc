"""
Order placement

Runs the checkout guards, prices the cart, bundles the gift sub-order and
submits everything to the upstream order endpoint.
"""

import logging
from typing import List, Optional

from backend_client import BackendClient
from errors import CheckoutError
from gifting import gift_payload, validate_gift
from pricing import compute_totals, gift_wrap_price
from schemas import Address, OrderRequest, PaymentMethod
from sessions import SessionState
from settings import PricingConfig

logger = logging.getLogger(__name__)


def select_address(addresses: List[Address], selected_id: Optional[str] = None) -> Optional[Address]:
    """Pick the delivery address: the requested one, else the default, else the first."""
    if selected_id:
        return next((a for a in addresses if a.id == selected_id), None)
    if not addresses:
        return None
    return next((a for a in addresses if a.is_default), addresses[0])


def build_order_request(
    session: SessionState,
    address_id: str,
    payment_method: PaymentMethod,
    wrap_price,
    config: Optional[PricingConfig] = None,
) -> OrderRequest:
    items = session.cart.items
    totals = compute_totals(items, wrap_price, config)
    return OrderRequest(
        items=items,
        address_id=address_id,
        payment_method=payment_method,
        subtotal=totals.subtotal,
        gift_wrap_price=totals.gift_wrap_price,
        delivery_fee=totals.delivery_fee,
        tax=totals.tax,
        total=totals.total,
        **gift_payload(session.cart.gift_options, fallback_sender=session.user_name),
    )


def check_guards(session: SessionState) -> None:
    if not session.token:
        raise CheckoutError("auth_required", "Please log in to place an order", 401)
    if session.cart.get_total_items() == 0:
        raise CheckoutError("empty_cart", "Your cart is empty")
    if session.placing_order:
        raise CheckoutError("order_in_progress", "Your order is already being placed", 409)


async def resolve_address_id(session: SessionState, client: BackendClient, address_id: Optional[str]) -> str:
    if address_id:
        return address_id
    if session.delivery_address is not None:
        return session.delivery_address.id
    chosen = select_address(await client.list_addresses())
    if chosen is None:
        raise CheckoutError("missing_address", "Please add a delivery address first")
    session.delivery_address = chosen
    return chosen.id


async def place_order(
    session: SessionState,
    client: BackendClient,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    address_id: Optional[str] = None,
    config: Optional[PricingConfig] = None,
) -> dict:
    """Place the session's cart as an order and clear the cart on success.

    Guards and gift validation run before any upstream call. The
    placing_order flag rejects a second submit while one is in flight.
    """
    check_guards(session)
    options = session.cart.gift_options
    validate_gift(options)

    session.placing_order = True
    try:
        client = client.with_token(session.token)
        resolved = await resolve_address_id(session, client, address_id)
        wrap_price = 0
        if options.is_gift and options.gift_wrap_id:
            wrap_price = gift_wrap_price(options, await client.list_gift_wraps())
        order = build_order_request(session, resolved, payment_method, wrap_price, config)
        data = await client.create_order(order.to_wire(exclude_none=True))
    finally:
        session.placing_order = False

    session.cart.clear_cart()
    logger.info("Order %s placed for session %s", (data.get("order") or {}).get("id"), session.session_id)
    return data
