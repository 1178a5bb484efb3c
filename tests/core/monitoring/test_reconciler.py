"""Tests for StreamLifecycleReconciler over a real SQLite store."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from core.monitoring.errors import ProbeUnavailableError, StoreError
from core.monitoring.models import ActivitySegment, Subscription
from core.monitoring.phase import was_live
from core.monitoring.reconciler import ReconcileOutcome, StreamLifecycleReconciler
from services.discord.announcements import NotificationReconciler

CHANNEL_ID = "11249217"


@pytest.fixture
def reconciler(store, probe, platform, now):
    return StreamLifecycleReconciler(
        store=store,
        probe=probe,
        notifier=NotificationReconciler(platform),
        clock=lambda: now,
    )


def _live_channel(make_channel, store, platform, *, activity="Just Chatting"):
    """Persist a mid-session channel whose subscriptions already have messages."""
    channel = make_channel(live=True, destinations=(111, 222))
    channel.segments.append(ActivitySegment(activity, channel.session_start))
    channel.subscriptions = [
        Subscription(destination_id=111, last_message_id=501),
        Subscription(destination_id=222, last_message_id=502),
    ]
    platform.messages[(111, 501)] = None
    platform.messages[(222, 502)] = None
    store.commit(channel)
    return channel


class TestSettled:
    async def test_offline_channel_is_noop(self, reconciler, store, probe, platform, make_channel):
        store.commit(make_channel(destinations=(111,)))

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.NOOP
        probe.fetch_snapshot.assert_not_awaited()
        assert platform.created == []

    async def test_unknown_channel_is_noop(self, reconciler, probe):
        outcome = await reconciler.execute("does-not-exist")

        assert outcome is ReconcileOutcome.NOOP
        probe.is_live.assert_not_awaited()


class TestSessionStart:
    async def test_start_posts_and_opens_segment(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        store.commit(make_channel(destinations=(111, 222)))
        snapshot = make_snapshot()
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = snapshot

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.STARTED
        saved = store.load(CHANNEL_ID)
        assert was_live(saved)
        assert saved.session_start == snapshot.created_at
        assert [(s.activity_name, s.is_open) for s in saved.segments] == [("Just Chatting", True)]
        assert all(sub.last_message_id for sub in saved.subscriptions)
        assert len(platform.created) == 2

        content = platform.messages[platform.created[0]]
        assert content.text == "@everyone JakenbakeLIVE is live!"
        assert content.embed.author.name == "JakenbakeLIVE is live"

    async def test_missing_snapshot_aborts_without_mutation(
        self, reconciler, store, probe, platform, make_channel
    ):
        original = make_channel(destinations=(111,))
        store.commit(original)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = None

        with pytest.raises(ProbeUnavailableError):
            await reconciler.execute(CHANNEL_ID)

        saved = store.load(CHANNEL_ID)
        assert saved.session_start == original.session_start
        assert saved.session_end == original.session_end
        assert saved.segments == []
        assert platform.created == []

    async def test_unresolved_destination_is_removed(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        store.commit(make_channel(destinations=(111, 999, 222)))
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot()

        await reconciler.execute(CHANNEL_ID)

        saved = store.load(CHANNEL_ID)
        assert [sub.destination_id for sub in saved.subscriptions] == [111, 222]
        assert sorted(dest for dest, _ in platform.created) == [111, 222]


class TestSessionOngoing:
    async def test_update_edits_existing_messages(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot()

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.UPDATED
        assert platform.created == []
        assert sorted(platform.edited) == [(111, 501), (222, 502)]
        saved = store.load(CHANNEL_ID)
        assert [sub.last_message_id for sub in saved.subscriptions] == [501, 502]
        assert len(saved.segments) == 1

    async def test_repeated_ticks_are_idempotent(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot()

        await reconciler.execute(CHANNEL_ID)
        first = store.load(CHANNEL_ID)
        await reconciler.execute(CHANNEL_ID)
        second = store.load(CHANNEL_ID)

        assert first == second
        assert platform.created == []

    async def test_activity_change_splits_segment(
        self, reconciler, store, probe, platform, make_channel, make_snapshot, now
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot(activity="Elden Ring")

        await reconciler.execute(CHANNEL_ID)

        saved = store.load(CHANNEL_ID)
        assert [s.activity_name for s in saved.segments] == ["Just Chatting", "Elden Ring"]
        assert saved.segments[0].end == now
        assert saved.segments[1].is_open

    async def test_deleted_message_is_reposted(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        _live_channel(make_channel, store, platform)
        platform.delete(111, 501)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot()

        await reconciler.execute(CHANNEL_ID)

        saved = store.load(CHANNEL_ID)
        reposted = saved.subscriptions[0]
        assert reposted.destination_id == 111
        assert reposted.last_message_id not in (0, 501)
        assert platform.created == [(111, reposted.last_message_id)]
        assert saved.subscriptions[1].last_message_id == 502

    async def test_platform_failure_aborts_without_commit(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        _live_channel(make_channel, store, platform)
        platform.failing.add(222)
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot(activity="Elden Ring")

        with pytest.raises(RuntimeError):
            await reconciler.execute(CHANNEL_ID)

        saved = store.load(CHANNEL_ID)
        assert len(saved.segments) == 1
        assert saved.segments[0].is_open


class TestSessionEnd:
    async def test_end_summarises_and_clears_messages(
        self, reconciler, store, probe, platform, make_channel, now
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = False

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.ENDED
        probe.fetch_snapshot.assert_not_awaited()
        saved = store.load(CHANNEL_ID)
        assert not was_live(saved)
        assert saved.session_end == now - timedelta(minutes=3)
        assert saved.segments[0].end == saved.session_end
        assert [sub.last_message_id for sub in saved.subscriptions] == [0, 0]

        summary = platform.messages[(111, 501)]
        assert summary.text == ""
        assert summary.embed.author.name == "JakenbakeLIVE was live"
        assert "Total Time" in summary.embed.description

    async def test_recent_end_is_debounced(self, reconciler, store, probe, platform, make_channel):
        store.commit(make_channel(ended_ago=timedelta(minutes=1), destinations=(111,)))
        probe.is_live.return_value = True

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.NOOP
        probe.is_live.assert_not_awaited()
        assert platform.created == []

    async def test_freshly_registered_channel_is_debounced(self, reconciler, store, probe, now):
        store.register_channel(CHANNEL_ID, "JakenbakeLIVE", now=now - timedelta(seconds=30))
        probe.is_live.return_value = True

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.NOOP
        probe.is_live.assert_not_awaited()

    async def test_next_session_posts_fresh_messages(
        self, store, probe, platform, make_channel, make_snapshot, now
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = False
        ending = StreamLifecycleReconciler(
            store=store,
            probe=probe,
            notifier=NotificationReconciler(platform),
            clock=lambda: now,
        )
        await ending.execute(CHANNEL_ID)

        later = now + timedelta(minutes=30)
        restarting = StreamLifecycleReconciler(
            store=store,
            probe=probe,
            notifier=NotificationReconciler(platform),
            clock=lambda: later,
        )
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot(created_at=later - timedelta(minutes=1))

        outcome = await restarting.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.STARTED
        assert len(platform.created) == 2
        assert (111, 501) in platform.messages


class TestAbort:
    async def test_probe_failure_aborts_without_commit(self, probe, platform, make_channel, now):
        mock_store = MagicMock()
        mock_store.load.return_value = make_channel(destinations=(111,))
        probe.is_live.return_value = None
        reconciler = StreamLifecycleReconciler(
            store=mock_store,
            probe=probe,
            notifier=NotificationReconciler(platform),
            clock=lambda: now,
        )

        with pytest.raises(ProbeUnavailableError) as exc_info:
            await reconciler.execute(CHANNEL_ID)

        assert exc_info.value.channel_id == CHANNEL_ID
        mock_store.commit.assert_not_called()
        assert platform.created == []

    async def test_commit_failure_propagates(self, probe, platform, make_channel, make_snapshot, now):
        mock_store = MagicMock()
        mock_store.load.return_value = make_channel(destinations=(111,))
        mock_store.commit.side_effect = StoreError("disk full")
        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot()
        reconciler = StreamLifecycleReconciler(
            store=mock_store,
            probe=probe,
            notifier=NotificationReconciler(platform),
            clock=lambda: now,
        )

        with pytest.raises(StoreError):
            await reconciler.execute(CHANNEL_ID)

        mock_store.commit.assert_called_once()


def _reconciler_at(store, probe, platform, at):
    return StreamLifecycleReconciler(
        store=store,
        probe=probe,
        notifier=NotificationReconciler(platform),
        clock=lambda: at,
    )


class TestStaleOffline:
    async def test_stream_seen_again_after_false_end_resumes(
        self, store, probe, platform, make_channel, make_snapshot, now
    ):
        channel = _live_channel(make_channel, store, platform)
        probe.is_live.return_value = False
        assert await _reconciler_at(store, probe, platform, now).execute(CHANNEL_ID) is ReconcileOutcome.ENDED

        probe.is_live.return_value = True
        probe.fetch_snapshot.return_value = make_snapshot(created_at=channel.session_start)
        outcomes = [
            await _reconciler_at(store, probe, platform, now + timedelta(minutes=minutes)).execute(CHANNEL_ID)
            for minutes in (1, 2, 3)
        ]

        assert outcomes == [ReconcileOutcome.STARTED, ReconcileOutcome.UPDATED, ReconcileOutcome.UPDATED]
        saved = store.load(CHANNEL_ID)
        assert was_live(saved)
        assert saved.session_start == channel.session_start
        assert [s.is_open for s in saved.segments] == [True]
        assert len(platform.created) == 2

        probe.is_live.return_value = False
        later = now + timedelta(minutes=10)
        outcome = await _reconciler_at(store, probe, platform, later).execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.ENDED
        saved = store.load(CHANNEL_ID)
        assert saved.session_end == later - timedelta(minutes=3)
        assert all(s.end == saved.session_end for s in saved.segments)


class TestConcurrentAdmin:
    async def test_subscription_changes_during_tick_survive_commit(
        self, reconciler, store, probe, platform, make_channel, make_snapshot
    ):
        _live_channel(make_channel, store, platform)
        probe.is_live.return_value = True

        async def fetch_snapshot(channel_id):
            store.add_subscription(channel_id, 333)
            store.remove_subscription(channel_id, 222)
            return make_snapshot()

        probe.fetch_snapshot.side_effect = fetch_snapshot

        outcome = await reconciler.execute(CHANNEL_ID)

        assert outcome is ReconcileOutcome.UPDATED
        saved = store.load(CHANNEL_ID)
        assert [(s.destination_id, s.last_message_id) for s in saved.subscriptions] == [
            (111, 501),
            (333, 0),
        ]
