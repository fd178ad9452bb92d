"""Settlement sink interface: assigns a settlement reference to each flushed reward."""

import json
import logging
from typing import Protocol
from uuid import uuid4

from echolayer.contracts.models import RewardRecord

SETTLEMENT_LOGGER_NAME = "echolayer.settlement"
DEFAULT_REFERENCE_PREFIX = "tx_"


class SettlementSink(Protocol):
    """Protocol for settling a batch of reward records."""

    def settle(self, records: list[RewardRecord]) -> list[str]:
        """Return one settlement reference per record, in order."""
        ...


class PlaceholderSettlementSink:
    """Assigns placeholder references ("tx_<uuid>") without settling anything."""

    def __init__(self, prefix: str = DEFAULT_REFERENCE_PREFIX) -> None:
        self.prefix = prefix

    def settle(self, records: list[RewardRecord]) -> list[str]:
        return [f"{self.prefix}{uuid4()}" for _ in records]


class JsonLogSettlementSink:
    """Settlement sink that writes one JSON line per record to logger echolayer.settlement."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        prefix: str = DEFAULT_REFERENCE_PREFIX,
    ) -> None:
        self._logger = logger or logging.getLogger(SETTLEMENT_LOGGER_NAME)
        self.prefix = prefix

    def settle(self, records: list[RewardRecord]) -> list[str]:
        """Log each record with its new reference and return the references."""
        references = []
        for record in records:
            reference = f"{self.prefix}{uuid4()}"
            payload = {
                "settlement_ref": reference,
                "reward_id": record.reward_id,
                "user_id": record.user_id,
                "content_id": record.content_id,
                "kind": record.kind.value,
                "amount": record.amount,
                "score_contribution": record.score_contribution,
                "timestamp": record.timestamp.isoformat(),
            }
            self._logger.info(json.dumps(payload))
            references.append(reference)
        return references
