"""
Gift configuration

Gift options live on the cart. GiftConfigurator is the only thing that
should change them: it keeps the is_gift switch consistent with the
dependent selections and enforces the checkout gate.
"""

from typing import Optional

from cart import CartStore
from errors import ValidationCode, ValidationError
from schemas import GREETING_MAX_LENGTH, CartState, GiftOptions

# Cleared when gifting is switched off. Sender details are the shopper's own
# and survive the toggle.
GIFT_SELECTIONS = ("gift_wrap_id", "occasion_id", "recipient_id", "greeting_message")


class GiftConfigurator:
    def __init__(self, cart: CartStore):
        self.cart = cart

    @property
    def options(self) -> GiftOptions:
        return self.cart.gift_options

    def _update(self, **changes) -> GiftOptions:
        options = self.options.model_copy(update=changes)
        self.cart.set_gift_options(options)
        return options

    def _require_enabled(self) -> None:
        if not self.options.is_gift:
            raise ValidationError(ValidationCode.GIFT_DISABLED)

    def enable(self) -> GiftOptions:
        return self._update(is_gift=True)

    def disable(self) -> GiftOptions:
        return self._update(is_gift=False, **{name: None for name in GIFT_SELECTIONS})

    def toggle(self, is_gift: bool) -> GiftOptions:
        return self.enable() if is_gift else self.disable()

    def choose_wrap(self, gift_wrap_id: Optional[str]) -> GiftOptions:
        self._require_enabled()
        return self._update(gift_wrap_id=gift_wrap_id or None)

    def choose_occasion(self, occasion_id: Optional[str]) -> GiftOptions:
        self._require_enabled()
        return self._update(occasion_id=occasion_id or None)

    def choose_recipient(self, recipient_id: Optional[str]) -> GiftOptions:
        self._require_enabled()
        return self._update(recipient_id=recipient_id or None)

    def set_message(self, message: Optional[str]) -> GiftOptions:
        self._require_enabled()
        if message and len(message) > GREETING_MAX_LENGTH:
            raise ValidationError(ValidationCode.MESSAGE_TOO_LONG)
        return self._update(greeting_message=message or None)

    def set_sender(self, name: Optional[str] = None, show: Optional[bool] = None) -> GiftOptions:
        changes = {}
        if name is not None:
            changes["sender_name"] = name.strip() or None
        if show is not None:
            changes["show_sender_name"] = show
        return self._update(**changes)

    def apply(self, changes: dict) -> GiftOptions:
        """Apply a partial update as one change.

        The update is staged on a scratch copy, switching gifting first so
        selections land in the right state. Any rejected field leaves the
        cart's options untouched and listeners are notified once.
        """
        changes = dict(changes)
        staged = GiftConfigurator(CartStore(CartState(gift_options=self.options)))
        is_gift = changes.pop("is_gift", None)
        if is_gift is not None:
            staged.toggle(is_gift)
        setters = {
            "gift_wrap_id": staged.choose_wrap,
            "occasion_id": staged.choose_occasion,
            "recipient_id": staged.choose_recipient,
            "greeting_message": staged.set_message,
        }
        for name, setter in setters.items():
            # Clearing an empty selection is fine while gifting is off
            if name in changes and (changes[name] or staged.options.is_gift):
                setter(changes[name])
        if "sender_name" in changes or "show_sender_name" in changes:
            staged.set_sender(changes.get("sender_name"), changes.get("show_sender_name"))
        if staged.options != self.options:
            self.cart.set_gift_options(staged.options)
        return self.options


def validate_gift(options: GiftOptions) -> None:
    # Wrap and occasion stay optional even for gifts; only the recipient gates checkout
    if options.is_gift and not options.recipient_id:
        raise ValidationError(ValidationCode.MISSING_RECIPIENT)


def gift_payload(options: GiftOptions, fallback_sender: Optional[str] = None) -> dict:
    if not options.is_gift:
        return {"is_gift": False}
    return {
        "is_gift": True,
        "recipient_id": options.recipient_id,
        "occasion_id": options.occasion_id,
        "gift_wrap_id": options.gift_wrap_id,
        "greeting_message": options.greeting_message,
        "sender_name": options.sender_name or fallback_sender,
        "show_sender_name": options.show_sender_name,
    }
