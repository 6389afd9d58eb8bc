"""
Per-session storefront state

Each shopper session gets its own cart (with gift options), delivery
location, address capture flow and auth token. When MongoDB is configured
the durable parts are written back at the end of every request that changed
them, so a session survives a restart; otherwise state is kept in memory
only. At most MAX_SESSIONS are held in memory; the least recently used is
dropped first.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from address_flow import AddressCaptureFlow
from cart import CartStore
from database import find_document, upsert_document
from gifting import GiftConfigurator
from schemas import Address, CartState
from settings import settings

logger = logging.getLogger(__name__)

SESSION_COLLECTION = "storefront_session"


@dataclass
class SessionState:
    session_id: str
    cart: CartStore = field(default_factory=CartStore)
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    delivery_address: Optional[Address] = None
    address_flow: AddressCaptureFlow = field(default_factory=AddressCaptureFlow)
    placing_order: bool = False
    # Last snapshot written to (or read from) the database
    persisted: Optional[dict] = field(default=None, repr=False, compare=False)

    @property
    def gifts(self) -> GiftConfigurator:
        return GiftConfigurator(self.cart)

    @property
    def user_name(self) -> Optional[str]:
        return (self.user or {}).get("name")

    def snapshot(self) -> dict:
        return {
            "session_id": self.session_id,
            "cart": self.cart.get().to_wire(),
            "token": self.token,
            "user": self.user,
            "delivery_address": self.delivery_address.to_wire() if self.delivery_address else None,
        }

    @classmethod
    def from_snapshot(cls, doc: dict) -> "SessionState":
        address = doc.get("delivery_address")
        state = cls(
            session_id=doc["session_id"],
            cart=CartStore(CartState.model_validate(doc.get("cart") or {})),
            token=doc.get("token"),
            user=doc.get("user"),
            delivery_address=Address.model_validate(address) if address else None,
        )
        state.persisted = state.snapshot()
        return state


class SessionRegistry:
    def __init__(self, persistent: Optional[bool] = None, max_sessions: Optional[int] = None):
        self.persistent = bool(settings.DATABASE_URL) if persistent is None else persistent
        self.max_sessions = max_sessions or settings.MAX_SESSIONS
        self._sessions: "OrderedDict[str, SessionState]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def get(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is not None:
            self._sessions.move_to_end(session_id)
            return state
        loaded = await self._load(session_id)
        # Another request may have created it while we were loading
        state = self._sessions.get(session_id) or loaded or SessionState(session_id=session_id)
        self._sessions[session_id] = state
        self._sessions.move_to_end(session_id)
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("Dropped idle session %s from memory", evicted)
        return state

    async def _load(self, session_id: str) -> Optional[SessionState]:
        if not self.persistent:
            return None
        try:
            doc = await find_document(SESSION_COLLECTION, {"session_id": session_id})
        except Exception as e:
            logger.warning("Could not restore session %s: %s", session_id, e)
            return None
        return SessionState.from_snapshot(doc) if doc else None

    async def save(self, state: SessionState) -> None:
        """Write the session back if anything durable changed since the last write."""
        if not self.persistent:
            return
        snapshot = state.snapshot()
        if snapshot == state.persisted:
            return
        try:
            await upsert_document(SESSION_COLLECTION, {"session_id": state.session_id}, snapshot)
        except Exception as e:
            # Best-effort; the in-memory copy stays authoritative
            logger.warning("Could not persist session %s: %s", state.session_id, e)
            return
        state.persisted = snapshot

    def reset(self) -> None:
        self._sessions.clear()
