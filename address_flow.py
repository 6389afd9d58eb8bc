"""
Address capture flow

Two steps: pick a point on the map (Selecting), then complete the postal
fields by hand (Completing). The reverse-geocode lookup only pre-fills the
draft; it never blocks the shopper from moving on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from errors import ValidationCode, ValidationError
from schemas import Address, AddressDraft, Coordinates

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("street", "city", "state", "pincode")

Geocoder = Callable[[float, float], Awaitable[Dict[str, Any]]]
Persister = Callable[[Dict[str, Any]], Awaitable[Address]]


@dataclass(frozen=True)
class Selecting:
    coords: Optional[Coordinates] = None
    draft: AddressDraft = field(default_factory=AddressDraft)
    display_address: str = ""

    step = "select"


@dataclass(frozen=True)
class Completing:
    coords: Coordinates
    draft: AddressDraft

    step = "form"


FlowState = Union[Selecting, Completing]


def parse_geocode(payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Pull street/landmark/city/state/pincode out of a reverse-geocode response.

    Prefers the upstream's pre-parsed block; otherwise walks the raw
    geocoder result, which carries no landmark. Only the fields the response
    speaks for are returned; an empty response returns nothing.
    """
    if not payload:
        return {}

    parsed = payload.get("parsed")
    if parsed:
        return {key: parsed.get(key) or "" for key in ("street", "landmark", "city", "state", "pincode")}

    fields = {"street": "", "city": "", "state": "", "pincode": ""}

    full = payload.get("fullResult") or {}
    formatted = full.get("formatted_address") or ""
    fields["street"] = formatted.split(",")[0].strip() if formatted else ""
    for component in full.get("address_components") or []:
        types = component.get("types") or []
        name = component.get("long_name") or ""
        if "locality" in types:
            fields["city"] = name
        if "administrative_area_level_1" in types:
            fields["state"] = name
        if "postal_code" in types:
            fields["pincode"] = name
    return fields


class AddressCaptureFlow:
    def __init__(self, state: Optional[FlowState] = None):
        self.state: FlowState = state or Selecting()
        self.error: Optional[str] = None

    @property
    def draft(self) -> AddressDraft:
        return self.state.draft

    async def pick(self, lat: float, lng: float, geocode: Optional[Geocoder] = None) -> FlowState:
        """Record a map pick and pre-fill the draft from reverse geocoding."""
        coords = Coordinates(lat=lat, lng=lng)
        draft = self.state.draft
        payload = None
        if geocode is not None:
            try:
                payload = await geocode(lat, lng)
            except Exception as e:
                logger.warning("Reverse geocode failed for %s,%s: %s", lat, lng, e)
        display = ""
        if payload:
            # A failed or empty lookup leaves whatever the shopper already typed
            draft = draft.model_copy(update=parse_geocode(payload))
            display = (payload.get("fullResult") or {}).get("formatted_address") or ""
        self.state = Selecting(coords=coords, draft=draft, display_address=display or draft.one_line())
        self.error = None
        return self.state

    def proceed(self) -> FlowState:
        if isinstance(self.state, Completing):
            return self.state
        if self.state.coords is None:
            raise ValidationError(ValidationCode.MISSING_COORDINATES)
        self.state = Completing(coords=self.state.coords, draft=self.state.draft)
        return self.state

    def back(self) -> FlowState:
        if isinstance(self.state, Completing):
            self.state = Selecting(
                coords=self.state.coords,
                draft=self.state.draft,
                display_address=self.state.draft.one_line(),
            )
        return self.state

    def edit(self, **changes) -> FlowState:
        if not isinstance(self.state, Completing):
            raise ValidationError(ValidationCode.NOT_COMPLETING)
        values = {**self.state.draft.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
        self.state = Completing(coords=self.state.coords, draft=AddressDraft(**values))
        return self.state

    def missing_fields(self) -> list:
        return [name for name in REQUIRED_FIELDS if not getattr(self.draft, name).strip()]

    def payload(self) -> Dict[str, Any]:
        if not isinstance(self.state, Completing):
            raise ValidationError(ValidationCode.NOT_COMPLETING)
        body = self.state.draft.to_wire()
        body.update(latitude=self.state.coords.lat, longitude=self.state.coords.lng, isDefault=True)
        return body

    async def submit(self, persist: Persister) -> Address:
        """Validate the draft and hand it to `persist`.

        Nothing is persisted when a required field is blank. On success the
        flow resets so the next capture starts from an empty map.
        """
        try:
            if not isinstance(self.state, Completing):
                raise ValidationError(ValidationCode.NOT_COMPLETING)
            missing = self.missing_fields()
            if missing:
                raise ValidationError(
                    ValidationCode.INCOMPLETE_ADDRESS,
                    "Please fill all address fields: " + ", ".join(missing),
                )
        except ValidationError as e:
            self.error = e.message
            raise
        address = await persist(self.payload())
        self.state = Selecting()
        self.error = None
        return address
