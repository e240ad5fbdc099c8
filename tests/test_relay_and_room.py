import asyncio
import unittest
from cacho.core.actions import Doubt, PlaceBet
from cacho.core.config import GameConfig
from cacho.core.engine import GameEngine
from cacho.core.state import GameState
from cacho.online.errors import IntentQueueFull, NotHostError, RelayError
from cacho.online.messages import Snapshot, encode_intent
from cacho.online.relay import InMemoryRelayStore
from cacho.online.room import CLIENT, HOST, Room
from cacho.online.settings import RoomSettings

FAST = RoomSettings(relay_timeout=0.05)


async def settle(rounds=10):
    for _ in range(rounds):
        await asyncio.sleep(0)


class StalledStore(InMemoryRelayStore):
    async def set_snapshot(self, room_id, snapshot):
        await asyncio.sleep(10)


class BrokenStore(InMemoryRelayStore):
    async def append_intent(self, room_id, envelope):
        raise ConnectionError("relay unreachable")


class TestInMemoryRelayStore(unittest.IsolatedAsyncioTestCase):
    async def test_snapshot_watch_gets_current_then_writes(self):
        store = InMemoryRelayStore()
        seen = []
        store.watch_snapshot("r", seen.append)
        await settle()
        self.assertEqual(seen, [None])
        await store.set_snapshot("r", Snapshot.of(None))
        await settle()
        self.assertEqual(len(seen), 2)
        self.assertIsInstance(seen[1], Snapshot)

    async def test_values_are_copied(self):
        store = InMemoryRelayStore()
        snapshot = Snapshot(state={"status": "SETUP"})
        await store.set_snapshot("r", snapshot)
        snapshot.state["status"] = "GAME_OVER"
        stored = await store.get_snapshot("r")
        self.assertEqual(stored.state["status"], "SETUP")

    async def test_unsubscribe_stops_delivery(self):
        store = InMemoryRelayStore()
        seen = []
        stop = store.watch_intents("r", seen.append)
        await store.append_intent("r", encode_intent(Doubt(), 1))
        stop()
        await settle()
        self.assertEqual(seen, [])

    async def test_intent_queue_is_bounded(self):
        store = InMemoryRelayStore(max_pending_intents=2)
        await store.append_intent("r", encode_intent(Doubt(), 1))
        await store.append_intent("r", encode_intent(Doubt(), 2))
        with self.assertRaises(IntentQueueFull):
            await store.append_intent("r", encode_intent(Doubt(), 3))
        pending = await store.pending_intents("r")
        await store.delete_intent("r", pending[0].id)
        await store.append_intent("r", encode_intent(Doubt(), 3))
        self.assertEqual(len(await store.pending_intents("r")), 2)

    async def test_existing_intents_delivered_to_new_watcher(self):
        store = InMemoryRelayStore()
        await store.append_intent("r", encode_intent(Doubt(), 1))
        seen = []
        store.watch_intents("r", seen.append)
        await settle()
        self.assertEqual([e.type for e in seen], ["DOUBT"])


class TestRoom(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryRelayStore()
        self.host = Room(self.store, "table", role=HOST, seat=0, settings=FAST)
        self.client = Room(self.store, "table", role=CLIENT, seat=1, settings=FAST)

    async def asyncTearDown(self):
        await self.host.close()
        await self.client.close()

    async def test_client_connects_until_ready_state(self):
        await self.client.open()
        await self.host.open()
        await settle()
        self.assertEqual(self.client.connection_status, "connecting")
        self.assertIsNotNone(await self.store.get_snapshot("table"))

        states = []
        self.client.subscribe(states.append)
        state = GameEngine(GameConfig(player_count=2, rng_seed=1)).start()
        await self.host.publish_state(state)
        await settle()
        self.assertEqual(self.client.connection_status, "ready")
        self.assertEqual(self.client.state, state)
        self.assertEqual(self.host.state, state)
        self.assertEqual(states[-1], state)

    async def test_republishing_is_idempotent_for_observers(self):
        await self.host.open()
        await self.client.open()
        state = GameEngine(GameConfig(player_count=2, rng_seed=2)).start()
        await self.host.publish_state(state)
        await settle()
        first = self.client.state
        await self.host.publish_state(state)
        await settle()
        self.assertEqual(self.client.state, first)

    async def test_only_host_publishes_and_consumes(self):
        await self.client.open()
        with self.assertRaises(NotHostError):
            await self.client.publish_state(GameState())
        with self.assertRaises(NotHostError):
            self.client.subscribe_intents(lambda envelope: None)

    async def test_intents_reach_host_once_and_are_removed(self):
        await self.host.open()
        await self.client.open()
        received = []

        async def handler(envelope):
            received.append(envelope)

        self.host.subscribe_intents(handler)
        sent = await self.client.send_intent(PlaceBet(quantity=2, face=3))
        await settle(20)
        self.assertEqual([e.id for e in received], [sent.id])
        self.assertEqual(received[0].player_id, 1)
        self.assertEqual(await self.store.pending_intents("table"), [])

    async def test_consumed_ids_stay_within_dedup_window(self):
        store = InMemoryRelayStore(max_pending_intents=500)
        settings = RoomSettings(relay_timeout=0.05, dedup_window=16)
        host = Room(store, "busy", role=HOST, seat=0, settings=settings)
        client = Room(store, "busy", role=CLIENT, seat=1, settings=settings)
        await host.open()
        await client.open()
        received = []

        async def handler(envelope):
            received.append(envelope.id)

        host.subscribe_intents(handler)
        for _ in range(200):
            await client.send_intent(Doubt())
        await settle(50)
        self.assertEqual(len(received), 200)
        self.assertEqual(len(set(received)), 200)
        self.assertLessEqual(host.consumed_count, 16)
        self.assertEqual(await store.pending_intents("busy"), [])
        await host.close()
        await client.close()

    async def test_timeout_becomes_relay_error(self):
        room = Room(StalledStore(), "slow", role=HOST, seat=0, settings=FAST)
        with self.assertRaises(RelayError):
            await room.open()
        self.assertIn("timed out", room.last_error)

    async def test_transport_failure_becomes_relay_error(self):
        room = Room(BrokenStore(), "down", role=CLIENT, seat=1, settings=FAST)
        await room.open()
        with self.assertRaises(RelayError):
            await room.send_intent(Doubt())
        self.assertIn("relay unreachable", room.last_error)
        await room.close()

    async def test_unreadable_snapshot_keeps_last_state(self):
        await self.client.open()
        await self.store.set_snapshot("table", Snapshot(state={"status": "NOPE"}))
        await settle()
        self.assertIsNone(self.client.state)


if __name__ == '__main__':
    unittest.main()
