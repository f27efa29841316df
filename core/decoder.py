"""
Payload Decoder — raw bus payload → ReactionEnvelope.

Pure parse. Missing or null optional fields (item, authorizations, ...) decode to
empty defaults; only a non-JSON blob or a missing/non-text `event.type`
is rejected here. Everything else is left to the classifier.
"""
from __future__ import annotations

from pydantic import ValidationError

from models.schemas import ReactionEnvelope


class DecodeError(ValueError):
    """Inbound payload is malformed or lacks the minimal shape."""

    def __init__(self, message: str, raw: str | bytes = ""):
        self.raw = raw
        super().__init__(message)


def decode(raw: str | bytes) -> ReactionEnvelope:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"payload is not valid UTF-8: {e}", raw) from e
    try:
        return ReactionEnvelope.model_validate_json(raw)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"invalid reaction payload: {errors}", raw) from e
