#!/usr/bin/env python3
"""Demo runner for the scoring and reward pipeline.

Usage:
    uv run python scripts/demo_run.py

Everything runs in memory; settled rewards are logged as JSON lines on the
echolayer.settlement logger.
"""

import logging
import sys
from datetime import datetime, timedelta, timezone

from echolayer.contracts.enums import NodeType
from echolayer.contracts.events import (
    EVENT_CONTENT_CREATED,
    EVENT_CONTENT_DISCOVERED,
    EVENT_CONTENT_PROPAGATED,
    EventEnvelope,
)
from echolayer.contracts.models import ContentRecord, PropagationNode, PropagationSignal
from echolayer.orchestration import Orchestrator
from echolayer.providers import InMemoryIdentitySource, JsonLogSettlementSink
from echolayer.settings import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

settlement_logger = logging.getLogger("echolayer.settlement")
settlement_logger.setLevel(logging.INFO)

logger = logging.getLogger(__name__)

SHARERS = ("ana", "ben", "chloe", "dev")


def _node(user_id: str, influence: float, at: datetime) -> dict:
    return PropagationNode(
        node_id=user_id,
        node_type=NodeType.USER,
        influence_weight=influence,
        reach=2000,
        engagement_rate=0.12,
        timestamp=at,
    ).model_dump(mode="json")


def main() -> int:
    """Create one post, propagate it through four users, settle and print the leaderboard."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting %s demo run (env=%s)", settings.app_name, settings.app_env)

    identities = InMemoryIdentitySource({"author": 0.7, "ana": 0.9, "ben": 0.4})
    orchestrator = Orchestrator.from_settings(
        settings,
        identity_source=identities,
        settlement_sink=JsonLogSettlementSink(prefix=settings.settlement_prefix),
    )

    created_at = datetime.now(timezone.utc) - timedelta(hours=6)
    content = ContentRecord(
        content_id="post-1",
        author_id="author",
        platform="twitter",
        body="Notes on how short essays travel between communities and come back changed " * 4,
        created_at=created_at,
        likes=120,
        comments=45,
        shares=30,
        quality_indicators={"originality": 0.8, "readability": 0.7, "informativeness": 0.75},
    )
    orchestrator.dispatch(
        EventEnvelope(
            event_name=EVENT_CONTENT_CREATED,
            occurred_at=created_at,
            payload={"user_id": "author", "content": content.model_dump(mode="json"), "quality_score": 0.78},
        )
    )

    signals: list[PropagationSignal] = []
    previous = "author"
    for i, sharer in enumerate(SHARERS):
        at = created_at + timedelta(hours=i + 1)
        signals.append(
            PropagationSignal(
                source_platform="twitter",
                target_platform=("twitter", "reddit", "mastodon")[i % 3],
                created_at=at,
                reach=3000,
                engagement=240,
            )
        )
        orchestrator.dispatch(
            EventEnvelope(
                event_name=EVENT_CONTENT_PROPAGATED,
                occurred_at=at,
                payload={
                    "propagator_id": sharer,
                    "content_id": content.content_id,
                    "creator_id": "author",
                    "from_node": _node(previous, identities.get_influence(previous) or 0.5, at),
                    "to_node": _node(sharer, identities.get_influence(sharer) or 0.5, at),
                    "content": content.model_dump(mode="json"),
                    "propagations": [s.model_dump(mode="json") for s in signals],
                },
            )
        )
        previous = sharer

    orchestrator.dispatch(
        EventEnvelope(
            event_name=EVENT_CONTENT_DISCOVERED,
            payload={"discoverer_id": "eve", "content_id": content.content_id, "discovery_timing": 0.2},
        )
    )

    metrics = orchestrator.get_content_metrics(content.content_id)
    for user_id in ("author", *SHARERS, "eve"):
        orchestrator.flush_user(user_id)

    print("\n" + "=" * 60)
    print("ECHO INDEX")
    print("=" * 60)
    print(f"Content:           {metrics.content_id}")
    print(f"Score:             {metrics.score:.2f} ({metrics.tier.value})")
    print(f"Originality:       {metrics.factors.originality:.2f}")
    print(f"Audience:          {metrics.factors.audience:.2f}")
    print(f"Temporal:          {metrics.factors.temporal:.2f}")
    print(f"Quality:           {metrics.factors.quality:.2f}")
    print("-" * 60)
    for stats in orchestrator.leaderboard():
        print(f"#{stats.rank:<3} {stats.user_id:<10} {stats.total_earned:>10.4f}  x{stats.current_multiplier:.1f}")
    pool = orchestrator.pool_status()
    print("-" * 60)
    print(f"Pool:              {pool.remaining:.2f} / {pool.daily_budget:.2f} ({pool.utilization:.2%} used)")
    print(f"Period started:    {pool.period_started_at.isoformat()}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
