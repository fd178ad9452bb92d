"""Collaborator interfaces and in-memory implementations."""

from echolayer.providers.content_store import ContentStore, InMemoryContentStore
from echolayer.providers.identity_source import IdentitySource, InMemoryIdentitySource
from echolayer.providers.settlement_sink import (
    SETTLEMENT_LOGGER_NAME,
    JsonLogSettlementSink,
    PlaceholderSettlementSink,
    SettlementSink,
)

__all__ = [
    "ContentStore",
    "IdentitySource",
    "InMemoryContentStore",
    "InMemoryIdentitySource",
    "JsonLogSettlementSink",
    "PlaceholderSettlementSink",
    "SETTLEMENT_LOGGER_NAME",
    "SettlementSink",
]
