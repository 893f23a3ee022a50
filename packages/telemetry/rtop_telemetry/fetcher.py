"""Single-shot snapshot fetch and schema-driven decode."""

from __future__ import annotations

import json
import math
from typing import Any

from .errors import FetchError, MalformedPayload, ProviderUnavailable
from .models import SNAPSHOT_SCHEMA, TelemetrySnapshot
from .provider import MetricsProvider


def _coerce(value: Any, kind: type) -> Any:
    if value is None:
        return None
    if kind is str:
        return value if isinstance(value, str) else None
    # bool is an int subclass; a JSON true/false is not a reading.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number):
        return None
    if kind is int:
        return int(number)
    return number


def decode_payload(data: bytes) -> TelemetrySnapshot | FetchError:
    """Decode a raw provider payload into a snapshot.

    Unknown keys are ignored and missing or non-numeric values stay ``None``;
    only an undecodable document fails the whole cycle.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return MalformedPayload(f"payload is not valid UTF-8: {exc}")

    if not text:
        return ProviderUnavailable("provider returned an empty payload")
    if not text.strip():
        return MalformedPayload("payload is blank")

    try:
        doc = json.loads(text)
    except ValueError as exc:
        return MalformedPayload(f"payload is not valid JSON: {exc}")

    if not isinstance(doc, dict):
        return MalformedPayload(f"payload is a JSON {type(doc).__name__}, expected an object")

    values = {spec.name: _coerce(doc.get(spec.name), spec.kind) for spec in SNAPSHOT_SCHEMA}
    return TelemetrySnapshot(**values)


class SnapshotFetcher:
    """Stateless fetch: one provider request, one release, one decoded result."""

    def __init__(self, provider: MetricsProvider) -> None:
        self.provider = provider

    def fetch(self) -> TelemetrySnapshot | FetchError:
        try:
            with self.provider.acquire() as buffer:
                if buffer is None or not buffer.data:
                    return ProviderUnavailable("provider returned no payload")
                return decode_payload(buffer.data)
        except OSError as exc:
            return ProviderUnavailable(f"provider request failed: {exc}")
