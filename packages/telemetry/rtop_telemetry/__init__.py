"""Telemetry snapshot fetch and decode for rtop."""

from .errors import FetchError, MalformedPayload, ProviderUnavailable
from .fetcher import SnapshotFetcher, decode_payload
from .models import SNAPSHOT_SCHEMA, FieldSpec, TelemetrySnapshot
from .provider import (
    PROVIDER_KINDS,
    MetricsProvider,
    NativeLibraryProvider,
    PayloadBuffer,
    SysfsProvider,
    build_provider,
    read_device_info,
)

__all__ = [
    "FetchError",
    "FieldSpec",
    "MalformedPayload",
    "MetricsProvider",
    "NativeLibraryProvider",
    "PROVIDER_KINDS",
    "PayloadBuffer",
    "ProviderUnavailable",
    "SNAPSHOT_SCHEMA",
    "SnapshotFetcher",
    "SysfsProvider",
    "TelemetrySnapshot",
    "build_provider",
    "decode_payload",
    "read_device_info",
]
