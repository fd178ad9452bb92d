"""Tests for the orchestrator pipeline and event dispatch."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from echolayer.contracts.enums import RewardKind
from echolayer.contracts.errors import InvalidInput, LoopNotFound, MetricsNotFound, PoolExhausted
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
from echolayer.orchestration.handlers import HANDLER_MAP
from echolayer.orchestration.orchestrator import Orchestrator
from echolayer.settings import Settings

from factories import make_content, make_node, make_signal


def _created(content_id: str = "content-1", now: datetime | None = None) -> ContentCreated:
    kwargs = {"created_at": now} if now is not None else {}
    return ContentCreated(
        user_id="creator",
        content=make_content(content_id, **kwargs),
        quality_score=0.8,
        initial_engagement=1.0,
    )


def _propagated(content_id: str = "content-1", propagator_id: str = "sharer", **kwargs) -> ContentPropagated:
    return ContentPropagated(
        propagator_id=propagator_id,
        content_id=content_id,
        creator_id="creator",
        from_node=make_node("creator"),
        to_node=make_node(propagator_id),
        **kwargs,
    )


class TestScoring:
    """Test the outward scoring calls."""

    def test_score_content_does_not_cache(self, orchestrator: Orchestrator, now: datetime) -> None:
        metrics = orchestrator.score_content(make_content(created_at=now), now=now)
        assert metrics.content_id == "content-1"
        with pytest.raises(MetricsNotFound):
            orchestrator.get_content_metrics("content-1")

    def test_update_content_metrics_overwrites_cache(self, orchestrator: Orchestrator, now: datetime) -> None:
        created = now - timedelta(hours=6)
        content = make_content(created_at=created)
        first = orchestrator.update_content_metrics(content, now=now)
        signals = [make_signal(created + timedelta(hours=i)) for i in range(10)]
        second = orchestrator.update_content_metrics(content, signals, now=now)
        assert second.score > first.score
        assert orchestrator.get_content_metrics("content-1").score == second.score


class TestContentCreated:
    """Test the creation flow."""

    def test_grants_creation_reward(self, orchestrator: Orchestrator, now: datetime) -> None:
        reward_id = orchestrator.handle_content_created(_created(now=now), now=now)

        pending = orchestrator.ledger.pending_rewards("creator")
        assert [r.reward_id for r in pending] == [reward_id]
        assert pending[0].kind == RewardKind.CONTENT_CREATION
        metrics = orchestrator.get_content_metrics("content-1")
        expected = orchestrator.ledger.calculate_creation_reward(metrics.score, 0.8, 1.0)
        assert pending[0].amount == pytest.approx(expected)
        assert pending[0].score_contribution == metrics.score


class TestContentPropagated:
    """Test the propagation flow."""

    def test_unscored_content_raises_without_mutation(self, orchestrator: Orchestrator, now: datetime) -> None:
        with pytest.raises(MetricsNotFound):
            orchestrator.handle_content_propagated(_propagated(), now=now)
        assert len(orchestrator.tracker) == 0
        assert orchestrator.pool_status().remaining == orchestrator.pool_status().daily_budget

    def test_rewards_propagator_and_creator(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        reward_ids = orchestrator.handle_content_propagated(_propagated(), now=now)

        assert len(reward_ids) == 2
        propagator = orchestrator.ledger.pending_rewards("sharer")
        assert propagator[0].kind == RewardKind.PROPAGATION_BONUS
        creator = [r for r in orchestrator.ledger.pending_rewards("creator") if r.kind == RewardKind.ECHO_LOOP_PARTICIPATION]
        assert creator[0].amount == pytest.approx(propagator[0].amount * 0.3)

    def test_self_propagation_has_no_residual(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        reward_ids = orchestrator.handle_content_propagated(_propagated(propagator_id="creator"), now=now)
        assert len(reward_ids) == 1

    def test_reuses_one_loop_per_content(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        orchestrator.handle_content_propagated(_propagated(), now=now)
        orchestrator.handle_content_propagated(_propagated(propagator_id="third"), now=now)

        loops = orchestrator.tracker.loops_for_content("content-1")
        assert len(loops) == 1
        assert len(loops[0].paths) == 2

    def test_unknown_loop_id(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        with pytest.raises(LoopNotFound):
            orchestrator.handle_content_propagated(_propagated(loop_id="loop_missing"), now=now)

    def test_loop_of_other_content_rejected(self, orchestrator: Orchestrator, now: datetime) -> None:
        """Test an explicit loop_id must belong to the propagated content."""
        orchestrator.handle_content_created(_created("content-a", now=now), now=now)
        orchestrator.handle_content_created(_created("content-b", now=now), now=now)
        orchestrator.handle_content_propagated(_propagated("content-b"), now=now)
        loop_b = orchestrator.tracker.loops_for_content("content-b")[0].loop_id
        remaining = orchestrator.pool_status().remaining

        with pytest.raises(InvalidInput) as exc_info:
            orchestrator.handle_content_propagated(_propagated("content-a", loop_id=loop_b), now=now)

        assert exc_info.value.field == "loop_id"
        assert len(orchestrator.tracker.get_loop(loop_b).paths) == 1
        assert orchestrator.tracker.loops_for_content("content-a") == []
        assert orchestrator.pool_status().remaining == remaining

    def test_rescores_when_content_supplied(self, orchestrator: Orchestrator, now: datetime) -> None:
        created = now - timedelta(hours=6)
        content = make_content(created_at=created)
        signals = [make_signal(created + timedelta(hours=i)) for i in range(10)]
        event = _propagated(content=content, propagations=signals)

        orchestrator.handle_content_propagated(event, now=now)

        assert orchestrator.get_content_metrics("content-1").score > 50.0

    def test_mismatched_content_rejected(self, orchestrator: Orchestrator, now: datetime) -> None:
        event = _propagated(content=make_content("other", created_at=now))
        with pytest.raises(InvalidInput):
            orchestrator.handle_content_propagated(event, now=now)

    def test_pool_exhaustion_rejects_both_grants(self, now: datetime) -> None:
        orchestrator = Orchestrator.from_settings(Settings(_env_file=None, daily_reward_pool=0.0))
        orchestrator.update_content_metrics(make_content(created_at=now), now=now)
        with pytest.raises(PoolExhausted):
            orchestrator.handle_content_propagated(_propagated(), now=now)
        assert orchestrator.ledger.pending_rewards("sharer") == []
        assert orchestrator.ledger.pending_rewards("creator") == []


class TestDiscoveryAndQuality:
    """Test the discovery and quality-bonus flows."""

    def test_discovery_requires_metrics(self, orchestrator: Orchestrator, now: datetime) -> None:
        with pytest.raises(MetricsNotFound):
            orchestrator.handle_content_discovered(
                ContentDiscovered(discoverer_id="scout", content_id="content-1"), now=now
            )

    def test_discovery_uses_default_influence(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        orchestrator.handle_content_discovered(
            ContentDiscovered(discoverer_id="scout", content_id="content-1", discovery_timing=0.0), now=now
        )
        score = orchestrator.get_content_metrics("content-1").score
        reward = orchestrator.ledger.pending_rewards("scout")[0]
        assert reward.kind == RewardKind.DISCOVERY_BONUS
        assert reward.amount == pytest.approx(score * 0.05 * (1.0 + 1.0 + 0.05))

    def test_quality_bonus(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        orchestrator.handle_quality_improved(
            QualityImproved(user_id="creator", content_id="content-1", score_improvement=2.0, viral_coefficient=3.0),
            now=now,
        )
        stats = orchestrator.ledger.get_stats("creator")
        assert stats.quality_bonuses == pytest.approx(40.0)


class TestQueries:
    """Test reward queries and administration."""

    def test_user_rewards_summary(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        summary = orchestrator.user_rewards("creator")
        assert summary.total_earned == pytest.approx(summary.pending)
        assert summary.multiplier >= 1.0

        orchestrator.flush_user("creator")
        assert orchestrator.user_rewards("creator").pending == 0.0

    def test_unknown_user_summary(self, orchestrator: Orchestrator) -> None:
        summary = orchestrator.user_rewards("nobody")
        assert (summary.total_earned, summary.pending, summary.multiplier) == (0.0, 0.0, 1.0)

    def test_leaderboard_and_pool(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        orchestrator.handle_content_propagated(_propagated(), now=now)

        board = orchestrator.leaderboard()
        assert [s.rank for s in board] == list(range(1, len(board) + 1))
        status = orchestrator.pool_status()
        assert 0.0 < status.utilization < 1.0

        orchestrator.reset_pool(now=now)
        assert orchestrator.pool_status().remaining == status.daily_budget

    def test_analytics_and_cleanup(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)
        orchestrator.handle_content_propagated(_propagated(), now=now)
        orchestrator.flush_user("sharer")

        assert orchestrator.propagation_analytics(now - timedelta(hours=1)).total_loops == 1
        assert orchestrator.reward_analytics(now - timedelta(hours=1)).unique_recipients == 1
        assert orchestrator.cleanup_loops(now=now + timedelta(days=10)) == 0


class TestDispatch:
    """Test envelope routing through HANDLER_MAP."""

    def test_handler_map_covers_events(self) -> None:
        assert set(HANDLER_MAP) == {
            EVENT_CONTENT_CREATED,
            EVENT_CONTENT_PROPAGATED,
            EVENT_CONTENT_DISCOVERED,
            EVENT_QUALITY_IMPROVED,
        }

    def test_dispatch_full_flow(self, orchestrator: Orchestrator, now: datetime) -> None:
        created = EventEnvelope(
            event_name=EVENT_CONTENT_CREATED,
            occurred_at=now,
            payload=_created(now=now).model_dump(mode="json"),
        )
        propagated = EventEnvelope(
            event_name=EVENT_CONTENT_PROPAGATED,
            occurred_at=now,
            payload=_propagated().model_dump(mode="json"),
        )

        reward_id = orchestrator.dispatch(created)
        reward_ids = orchestrator.dispatch(propagated)

        assert isinstance(reward_id, str)
        assert len(reward_ids) == 2
        assert orchestrator.ledger.pending_rewards("creator")[0].timestamp == now

    def test_naive_occurred_at_read_as_utc(self, orchestrator: Orchestrator, now: datetime) -> None:
        envelope = EventEnvelope(
            event_name=EVENT_CONTENT_CREATED,
            occurred_at=now.replace(tzinfo=None),
            payload=_created(now=now).model_dump(mode="json"),
        )
        assert envelope.occurred_at == now

        orchestrator.dispatch(envelope)
        assert orchestrator.ledger.pending_rewards("creator")[0].timestamp == now

    def test_unknown_event_rejected(self, orchestrator: Orchestrator) -> None:
        with pytest.raises(InvalidInput):
            orchestrator.dispatch(EventEnvelope(event_name="content.deleted"))

    def test_invalid_payload_rejected(self, orchestrator: Orchestrator) -> None:
        envelope = EventEnvelope(event_name=EVENT_CONTENT_CREATED, payload={"user_id": ""})
        with pytest.raises(ValueError):
            orchestrator.dispatch(envelope)

    def test_empty_event_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            EventEnvelope(event_name="  ")


class TestConcurrency:
    """Test concurrent events against shared state."""

    def test_parallel_propagations_share_one_loop(self, orchestrator: Orchestrator, now: datetime) -> None:
        orchestrator.handle_content_created(_created(now=now), now=now)

        def propagate(i: int) -> list[str]:
            return orchestrator.handle_content_propagated(_propagated(propagator_id=f"user-{i}"), now=now)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(propagate, range(40)))

        assert all(len(ids) == 2 for ids in results)
        loops = orchestrator.tracker.loops_for_content("content-1")
        assert len(loops) == 1
        assert len(loops[0].paths) == 40
        assert len(orchestrator.leaderboard()) == 41
