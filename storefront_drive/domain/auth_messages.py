"""Cross-window messages exchanged between the callback popup and its opener.

The wire format is a JSON object tagged by ``type``::

    {"type": "GOOGLE_DRIVE_AUTH_SUCCESS", "tokens": {...}, "attempt_id": "..."}
    {"type": "GOOGLE_DRIVE_AUTH_ERROR", "error": "access_denied", "attempt_id": "..."}
    {"type": "GOOGLE_DRIVE_AUTH_ACK", "attempt_id": "..."}

Anything arriving from another window is untrusted, so payloads go through
:func:`parse_auth_message` before any field is read.
"""

from __future__ import annotations

import json
import secrets
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, StrictStr, TypeAdapter, ValidationError
from typing_extensions import Annotated


AUTH_SUCCESS = "GOOGLE_DRIVE_AUTH_SUCCESS"
AUTH_ERROR = "GOOGLE_DRIVE_AUTH_ERROR"
AUTH_ACK = "GOOGLE_DRIVE_AUTH_ACK"


def new_attempt_id() -> str:
    return secrets.token_hex(8)


class AuthSuccessMessage(BaseModel):
    """Carries the token payload exactly as the exchange returned it."""

    type: Literal["GOOGLE_DRIVE_AUTH_SUCCESS"] = AUTH_SUCCESS
    tokens: Dict[str, Any]
    attempt_id: Optional[StrictStr] = None

    @classmethod
    def from_tokens(cls, tokens: Mapping[str, Any], *, attempt_id: Optional[str] = None) -> "AuthSuccessMessage":
        return cls(tokens=dict(tokens), attempt_id=attempt_id)

    @property
    def refresh_token(self) -> Optional[str]:
        value = self.tokens.get("refresh_token")
        return value if isinstance(value, str) and value else None


class AuthErrorMessage(BaseModel):
    type: Literal["GOOGLE_DRIVE_AUTH_ERROR"] = AUTH_ERROR
    error: StrictStr
    attempt_id: Optional[StrictStr] = None


class AuthAckMessage(BaseModel):
    type: Literal["GOOGLE_DRIVE_AUTH_ACK"] = AUTH_ACK
    attempt_id: StrictStr


AuthMessage = Annotated[
    Union[AuthSuccessMessage, AuthErrorMessage, AuthAckMessage],
    Field(discriminator="type"),
]

_AUTH_MESSAGE_ADAPTER: TypeAdapter = TypeAdapter(AuthMessage)


def parse_auth_message(data: Any) -> Optional[Union[AuthSuccessMessage, AuthErrorMessage, AuthAckMessage]]:
    """Validate an incoming payload, returning ``None`` for anything foreign.

    Strings are decoded as JSON first; decode failures, non-objects, unknown
    ``type`` values and schema mismatches all yield ``None``.
    """
    if not data:
        return None
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError:
            return None
    if not isinstance(data, dict):
        return None
    try:
        return _AUTH_MESSAGE_ADAPTER.validate_python(data)
    except ValidationError:
        return None


def to_wire(message: Union[AuthSuccessMessage, AuthErrorMessage, AuthAckMessage]) -> Dict[str, Any]:
    """Plain-dict form posted across windows.

    Token payloads keep the exact field set the provider returned and
    ``attempt_id`` is omitted when unset.
    """
    payload: Dict[str, Any] = {"type": message.type}
    if isinstance(message, AuthSuccessMessage):
        payload["tokens"] = dict(message.tokens)
    elif isinstance(message, AuthErrorMessage):
        payload["error"] = message.error
    if message.attempt_id is not None:
        payload["attempt_id"] = message.attempt_id
    return payload


__all__ = [
    "AUTH_ACK",
    "AUTH_ERROR",
    "AUTH_SUCCESS",
    "AuthAckMessage",
    "AuthErrorMessage",
    "AuthMessage",
    "AuthSuccessMessage",
    "new_attempt_id",
    "parse_auth_message",
    "to_wire",
]
