from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from schemas import CartItem, GiftOptions, GiftWrap, PricingSnapshot
from settings import PricingConfig

CENTS = Decimal("0.01")
ZERO = Decimal("0")


# -----------------------
# Pricing/Tax/Delivery
# -----------------------

def calc_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((Decimal(i.price) * i.quantity for i in items), ZERO)


def calc_delivery_fee(taxable: Decimal, config: PricingConfig) -> Decimal:
    # Free strictly above the threshold; the threshold amount itself pays the fee
    if taxable > config.free_delivery_threshold:
        return ZERO
    return config.flat_delivery_fee


def calc_tax(taxable: Decimal, config: PricingConfig) -> Decimal:
    return taxable * config.tax_rate


def compute_totals(
    items: Iterable[CartItem],
    gift_wrap_price: Decimal = ZERO,
    config: Optional[PricingConfig] = None,
) -> PricingSnapshot:
    """Price a cart.

    Gift wrap is taxed and counts toward free delivery. Nothing is rounded
    here: every field is exact and total is the exact sum of the other four.
    Rounding to cents happens only when a price is displayed.
    """
    config = config or PricingConfig()
    wrap = Decimal(gift_wrap_price)
    subtotal = calc_subtotal(items)
    taxable = subtotal + wrap
    delivery_fee = calc_delivery_fee(taxable, config)
    tax = calc_tax(taxable, config)
    return PricingSnapshot(
        subtotal=subtotal,
        gift_wrap_price=wrap,
        delivery_fee=delivery_fee,
        tax=tax,
        total=subtotal + wrap + delivery_fee + tax,
    )


def gift_wrap_price(options: GiftOptions, gift_wraps: Iterable[GiftWrap]) -> Decimal:
    if not options.is_gift or not options.gift_wrap_id:
        return ZERO
    for wrap in gift_wraps:
        if wrap.id == options.gift_wrap_id:
            return Decimal(wrap.price)
    return ZERO


def format_price(amount) -> str:
    value = Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"₹{value:,.2f}"


def amount_to_free_delivery(totals: PricingSnapshot, config: Optional[PricingConfig] = None) -> Decimal:
    """Smallest cent amount that, added to the order, makes delivery free."""
    config = config or PricingConfig()
    if totals.delivery_fee == 0:
        return ZERO
    return config.free_delivery_threshold - (totals.subtotal + totals.gift_wrap_price) + CENTS
