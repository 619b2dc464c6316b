import asyncio
import unittest

from relay.broadcast import BroadcastScheduler, broadcast_others, build_others
from relay.handlers import handle_message
from relay.lifecycle import on_close, on_open
from relay.state import RelayState

from fakes import FakeChannel, StalledChannel, join_frame, pos_frame


def _joined(state, *pairs):
    """Open one connection per (room, name) pair and join it."""
    players = [on_open(state, FakeChannel()) for _ in pairs]

    async def run():
        for player, (room, name) in zip(players, pairs):
            await handle_message(state, player.identity, join_frame(room, name))

    asyncio.run(run())
    for player in players:
        player.channel.sent.clear()
    return players


class TestBroadcastTick(unittest.TestCase):
    def test_two_player_scenario(self):
        state = RelayState()
        a, b = _joined(state, ("abc", "Al"), ("abc", "Bo"))

        sent = asyncio.run(broadcast_others(state))

        self.assertEqual(sent, 2)
        self.assertEqual(a.channel.frames(), [{
            "type": "others",
            "players": [{"id": b.identity, "name": "Bo", "x": 500, "y": 500, "z": 0, "dir": 0, "isRunning": False}],
        }])
        self.assertEqual(b.channel.others()[0]["players"][0]["id"], a.identity)

    def test_disconnect_scenario(self):
        state = RelayState()
        a, b = _joined(state, ("abc", "Al"), ("abc", "Bo"))

        on_close(state, a.identity)
        asyncio.run(broadcast_others(state))

        self.assertEqual(state.rooms.get("abc"), {b.identity})
        self.assertEqual(b.channel.frames(), [{"type": "others", "players": []}])
        self.assertEqual(a.channel.sent, [])

        on_close(state, b.identity)
        self.assertNotIn("abc", state.rooms)

    def test_snapshot_excludes_self_and_other_rooms(self):
        state = RelayState()
        a, b, c, d = _joined(state, ("r1", "A"), ("r1", "B"), ("r1", "C"), ("r2", "D"))

        asyncio.run(broadcast_others(state))

        ids = {p["id"] for p in a.channel.others()[0]["players"]}
        self.assertEqual(ids, {b.identity, c.identity})
        self.assertEqual(d.channel.others(), [{"type": "others", "players": []}])

    def test_non_ready_player_gets_nothing(self):
        state = RelayState()
        lurker = on_open(state, FakeChannel())
        (a,) = _joined(state, ("abc", "Al"))

        asyncio.run(broadcast_others(state))

        self.assertEqual(lurker.channel.sent, [])
        self.assertEqual(a.channel.others(), [{"type": "others", "players": []}])

    def test_position_before_join_relayed_after_join(self):
        state = RelayState()
        (a,) = _joined(state, ("abc", "Al"))
        b = on_open(state, FakeChannel())

        async def run():
            await handle_message(state, b.identity, pos_frame(7, 8, 9, direction=3, running=True))
            await broadcast_others(state)
            before = a.channel.others()[-1]["players"]
            await handle_message(state, b.identity, join_frame("abc", "Bo"))
            await broadcast_others(state)
            return before, a.channel.others()[-1]["players"]

        before, after = asyncio.run(run())
        self.assertEqual(before, [])
        self.assertEqual(after, [{"id": b.identity, "name": "Bo", "x": 7, "y": 8, "z": 9, "dir": 3, "isRunning": True}])

    def test_send_failure_does_not_abort_tick(self):
        state = RelayState()
        a, b, c = _joined(state, ("abc", "A"), ("abc", "B"), ("abc", "C"))
        b.channel.fail = True

        sent = asyncio.run(broadcast_others(state))

        self.assertEqual(sent, 2)
        self.assertEqual(len(a.channel.others()), 1)
        self.assertEqual(len(c.channel.others()), 1)
        # A broken channel is not cleaned up by the tick itself.
        self.assertIn(b.identity, state.players)
        self.assertIn(b.identity, state.rooms.get("abc"))

    def test_stalled_send_times_out(self):
        state = RelayState()
        a, b = _joined(state, ("r1", "A"), ("r1", "B"))
        (c,) = _joined(state, ("r2", "C"))
        b.channel = StalledChannel()

        sent = asyncio.run(asyncio.wait_for(broadcast_others(state, send_timeout=0.05), 2))

        self.assertEqual(sent, 2)
        self.assertEqual(b.channel.attempts, 1)
        self.assertEqual(len(a.channel.others()), 1)
        self.assertEqual(len(c.channel.others()), 1)
        self.assertIn(b.identity, state.players)

    def test_unbuildable_snapshot_only_skips_its_recipients(self):
        state = RelayState()
        a, b = _joined(state, ("r1", "A"), ("r1", "B"))
        c, d = _joined(state, ("r2", "C"), ("r2", "D"))

        def broken_snapshot():
            raise ValueError("corrupt state")

        b.snapshot = broken_snapshot

        sent = asyncio.run(broadcast_others(state))

        # A cannot be sent B's state; everyone else is unaffected.
        self.assertEqual(sent, 3)
        self.assertEqual(a.channel.sent, [])
        self.assertEqual(b.channel.others()[0]["players"][0]["id"], a.identity)
        self.assertEqual(len(c.channel.others()), 1)
        self.assertEqual(len(d.channel.others()), 1)

    def test_oversized_coordinate_is_dropped(self):
        state = RelayState()
        a, b = _joined(state, ("r1", "A"), ("r1", "B"))
        (c,) = _joined(state, ("r2", "C"))
        huge = '{"pos": {"x": 1' + "0" * 400 + ', "y": 0, "z": 0, "direction": 0, "isRunning": false}}'

        async def run():
            await handle_message(state, b.identity, huge)
            return await broadcast_others(state)

        sent = asyncio.run(run())

        self.assertEqual(b.position, (500, 500, 0))
        self.assertEqual(sent, 3)
        self.assertEqual(a.channel.others()[0]["players"][0]["x"], 500)
        self.assertEqual(len(c.channel.others()), 1)

    def test_vanished_room_and_member_are_skipped(self):
        state = RelayState()
        a, b = _joined(state, ("abc", "Al"), ("abc", "Bo"))

        state.players.remove(b.identity)
        self.assertEqual(build_others(state, a).players, [])

        state.rooms.discard_everywhere(a.identity)
        self.assertIsNone(build_others(state, a))
        self.assertEqual(asyncio.run(broadcast_others(state)), 0)


class TestBroadcastScheduler(unittest.TestCase):
    def test_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            BroadcastScheduler(RelayState(), 0)

    def test_runs_until_stopped(self):
        state = RelayState()
        (a,) = _joined(state, ("abc", "Al"))

        async def run():
            scheduler = BroadcastScheduler.from_rate(state, 200)
            async with scheduler:
                self.assertTrue(scheduler.running)
                await asyncio.sleep(0.1)
            self.assertFalse(scheduler.running)
            ticks = scheduler.ticks
            await asyncio.sleep(0.05)
            self.assertEqual(scheduler.ticks, ticks)
            await scheduler.stop()
            return ticks

        ticks = asyncio.run(run())
        self.assertGreaterEqual(ticks, 3)
        # A tick cancelled mid-send may have delivered without being counted.
        self.assertIn(len(a.channel.others()), (ticks, ticks + 1))

    def test_stalled_client_does_not_stall_other_rooms(self):
        state = RelayState()
        (healthy,) = _joined(state, ("r1", "A"))
        (stuck,) = _joined(state, ("r2", "B"))
        stuck.channel = StalledChannel()

        async def run():
            async with BroadcastScheduler(state, 1 / 30):
                await asyncio.sleep(0.5)

        asyncio.run(run())

        self.assertGreaterEqual(len(healthy.channel.others()), 8)
        self.assertGreaterEqual(stuck.channel.attempts, 8)

    def test_tick_errors_do_not_kill_loop(self):
        state = RelayState()
        (a,) = _joined(state, ("abc", "Al"))
        calls = {"n": 0}

        def flaky_ready_players():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            return [a]

        state.players.ready_players = flaky_ready_players

        async def run():
            async with BroadcastScheduler(state, 0.01) as scheduler:
                await asyncio.sleep(0.1)
            return scheduler.ticks

        ticks = asyncio.run(run())
        self.assertGreater(ticks, 1)
        self.assertGreaterEqual(len(a.channel.others()), 1)


if __name__ == "__main__":
    unittest.main()
