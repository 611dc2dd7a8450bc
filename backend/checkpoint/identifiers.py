"""Operator-entered identifiers attached to each submission.

A deployment uses exactly one scheme: vehicle numbers at a checkpoint gate, or
an email address for self-service kiosks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class IdentifierScheme:
    name: str
    field: str
    placeholder: str
    prompt: str
    lowercase: bool = False
    must_contain: str = ""
    invalid_message: str = ""

    def normalize(self, value: Optional[str]) -> str:
        text = (value or "").strip()
        return text.lower() if self.lowercase else text

    def validate(self, value: str, *, required: bool) -> Optional[str]:
        """Return a validation message, or None when ``value`` is acceptable."""
        if not value:
            return self.prompt if required else None
        if self.must_contain and self.must_contain not in value:
            return self.invalid_message
        return None


VEHICLE = IdentifierScheme(
    name="vehicle",
    field="vehicleNumber",
    placeholder="No Vehicle Number",
    prompt="Please enter the vehicle number.",
)

EMAIL = IdentifierScheme(
    name="email",
    field="email",
    placeholder="No Email",
    prompt="Please enter your email address.",
    lowercase=True,
    must_contain="@",
    invalid_message="Please enter a valid email address.",
)

SCHEMES = {scheme.name: scheme for scheme in (VEHICLE, EMAIL)}


def get_scheme(name: str) -> IdentifierScheme:
    try:
        return SCHEMES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown identifier scheme {name!r}; expected one of {sorted(SCHEMES)}."
        ) from None
