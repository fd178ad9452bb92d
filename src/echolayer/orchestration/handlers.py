"""Event handlers: validate the envelope payload and call the orchestrator."""

import logging
from typing import TYPE_CHECKING, Any

from echolayer.contracts.events import (
    EVENT_CONTENT_CREATED,
    EVENT_CONTENT_DISCOVERED,
    EVENT_CONTENT_PROPAGATED,
    EVENT_QUALITY_IMPROVED,
    ContentCreated,
    ContentDiscovered,
    ContentPropagated,
    EventEnvelope,
    QualityImproved,
)

if TYPE_CHECKING:
    from echolayer.orchestration.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


def handle_content_created(envelope: EventEnvelope, orchestrator: "Orchestrator") -> str:
    event = ContentCreated.model_validate(envelope.payload)
    return orchestrator.handle_content_created(event, now=envelope.occurred_at)


def handle_content_propagated(envelope: EventEnvelope, orchestrator: "Orchestrator") -> list[str]:
    event = ContentPropagated.model_validate(envelope.payload)
    return orchestrator.handle_content_propagated(event, now=envelope.occurred_at)


def handle_content_discovered(envelope: EventEnvelope, orchestrator: "Orchestrator") -> str:
    event = ContentDiscovered.model_validate(envelope.payload)
    logger.info(
        "Content %s discovered by %s via %s on %s",
        event.content_id, event.discoverer_id, event.discovery_method, event.platform,
    )
    return orchestrator.handle_content_discovered(event, now=envelope.occurred_at)


def handle_quality_improved(envelope: EventEnvelope, orchestrator: "Orchestrator") -> str:
    event = QualityImproved.model_validate(envelope.payload)
    return orchestrator.handle_quality_improved(event, now=envelope.occurred_at)


HANDLER_MAP: dict[str, Any] = {
    EVENT_CONTENT_CREATED: handle_content_created,
    EVENT_CONTENT_PROPAGATED: handle_content_propagated,
    EVENT_CONTENT_DISCOVERED: handle_content_discovered,
    EVENT_QUALITY_IMPROVED: handle_quality_improved,
}
