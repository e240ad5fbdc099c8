"""
host.py
The authoritative side of a room. HostSession owns the GameEngine, applies intents one at a time,
republishes the snapshot after each change and drives the timed transitions (bot turns,
reveal steps, round-over pause). HostRegistry keeps one live session per room id.
Related modules:
- room.py: Publishing and intent consumption over the relay store.
- scheduler.py: Cancellable timers tied to the room's lifetime.
- core/engine.py: The state machine being driven.
- agents/statistical_agent.py: Bot decisions.
"""

import asyncio
import logging
import random
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Optional, Set, Union

from ..agents.statistical_agent import DEFAULT_PERSONALITY, BotPersonality, decide_bot_action
from ..core.actions import (
    Action, Doubt, FinishReveal, Intent, NextRound, PlaceBet, RevealNextPlayer, SetMessage,
)
from ..core.bet import Bet, is_bet_valid
from ..core.config import GameConfig, GameConfigError
from ..core.engine import GameEngine
from ..core.state import GameState, GameStatus, active_players, is_ready, reveal_complete
from .errors import InvalidIntentError, RelayError
from .messages import IntentEnvelope, decode_intent
from .relay import RelayStore, Unsubscribe
from .room import HOST, Room
from .scheduler import TransitionScheduler
from .settings import RoomSettings, settings as default_settings

logger = logging.getLogger(__name__)

TURN = "turn"


class HostSession:
    """
    Args:
        room (Room): A Room opened (or to be opened) with role "host".
        settings (RoomSettings|None): Pacing and limits.
        rng (random.Random|None): Shared by the engine, the bots and the pacing jitter.
        personality (BotPersonality): Policy constants for every bot seat.
    """
    def __init__(self, room: Room, settings: Optional[RoomSettings] = None,
                 rng: Optional[random.Random] = None, personality: BotPersonality = DEFAULT_PERSONALITY):
        if not room.is_host:
            raise ValueError("HostSession needs a room opened with the host role")
        self.room = room
        self.settings = settings or room.settings or default_settings
        self.rng = rng or random.Random()
        self.personality = personality
        self.engine = GameEngine(rng=self.rng)
        self.scheduler = TransitionScheduler()
        self.last_error: Optional[str] = None
        self._lock = asyncio.Lock()
        self._version = 0
        self._recent_ids: Deque[str] = deque()
        self._recent_set: Set[str] = set()
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False

    @property
    def state(self) -> GameState:
        return self.engine.state

    @property
    def room_id(self) -> str:
        return self.room.room_id

    async def open(self) -> None:
        """Join the room and start consuming intents."""
        await self.room.open()
        self._unsubscribe = self.room.subscribe_intents(self.handle_intent)

    async def start_game(self, config: GameConfig) -> bool:
        """
        Seat the players and publish the first round.
        A bad configuration is reported through last_error and leaves the room waiting for a retry.
        Returns:
            bool: True if the game started.
        """
        async with self._lock:
            try:
                self.engine.start(config)
            except GameConfigError as exc:
                self.last_error = f"cannot start game: {exc}"
                logger.warning("Room %s: %s", self.room_id, self.last_error)
                return False
            self._version += 1
            logger.info("Room %s: game started with %d players", self.room_id, config.player_count)
            await self._after_change()
            return True

    async def handle_intent(self, envelope: IntentEnvelope) -> None:
        """Entry point for intents consumed from the relay queue."""
        if self._seen(envelope.id):
            logger.info("Room %s: dropping duplicate intent %s", self.room_id, envelope.id)
            return
        self._remember(envelope.id)
        try:
            intent = decode_intent(envelope)
        except InvalidIntentError as exc:
            logger.info("Room %s: ignoring intent %s: %s", self.room_id, envelope.id, exc)
            return
        await self.submit(intent, envelope.player_id)

    async def submit(self, intent: Intent, seat: Optional[Union[int, str]]) -> bool:
        """
        Apply an intent on behalf of 'seat' if it is that seat's turn and the move is legal.
        Returns:
            bool: True if the state changed.
        """
        async with self._lock:
            reason = self._rejection(intent, seat)
            if reason is not None:
                logger.info("Room %s: ignoring %s from seat %s: %s", self.room_id, intent.TYPE, seat, reason)
                return False
            return await self._apply(intent, actor=int(seat))

    def _rejection(self, intent: Intent, seat) -> Optional[str]:
        state = self.engine.state
        if not is_ready(state) or state.status is GameStatus.GAME_OVER:
            return "no game in progress"
        try:
            seat = int(seat)
        except (TypeError, ValueError):
            return "unknown seat"
        if seat not in state.human_seats:
            return "seat is played by a bot"
        if seat != state.current_player_index:
            return "not this seat's turn"
        if isinstance(intent, PlaceBet):
            current = state.current_bet
            to_beat = state.previous_bet if current is not None and current.is_salpicon else current
            check = is_bet_valid(to_beat, Bet(player_id=seat, quantity=intent.quantity, face=intent.face))
            if not check.ok:
                return check.reason
        return None

    def _seen(self, intent_id: str) -> bool:
        return intent_id in self._recent_set

    def _remember(self, intent_id: str) -> None:
        self._recent_ids.append(intent_id)
        self._recent_set.add(intent_id)
        while len(self._recent_ids) > self.settings.dedup_window:
            self._recent_set.discard(self._recent_ids.popleft())

    def _mutate(self, action: Action, actor: Optional[int] = None) -> bool:
        """Apply action to the engine; a real change invalidates every pending timer."""
        before = self.engine.state
        if self.engine.apply(action, actor) is before:
            return False
        self._version += 1
        return True

    async def _apply(self, action: Action, actor: Optional[int] = None) -> bool:
        if not self._mutate(action, actor):
            return False
        await self._after_change()
        return True

    async def _after_change(self) -> None:
        self._schedule_followup()
        await self._publish()

    async def _publish(self) -> bool:
        state = self.engine.state
        if not is_ready(state):
            logger.debug("Room %s: state not ready, holding publication", self.room_id)
            return False
        try:
            await self.room.publish_state(state)
        except RelayError as exc:
            self.last_error = str(exc)
            logger.warning("Room %s: publish failed, state kept locally: %s", self.room_id, exc)
            return False
        self.last_error = None
        return True

    async def republish(self) -> bool:
        """Retry publication of the current state after a transport failure."""
        async with self._lock:
            return await self._publish()

    def _timed(self, handler: Callable[[], Awaitable[None]]) -> Callable[[], Awaitable[None]]:
        version = self._version

        async def run():
            async with self._lock:
                # a newer state has superseded the one this timer was scheduled for
                if self._closed or version != self._version:
                    return
                await handler()
        return run

    def _schedule_followup(self) -> None:
        state = self.engine.state
        s = self.settings
        if state.status is GameStatus.IN_PROGRESS and state.current_player_index not in state.human_seats:
            self.scheduler.schedule(TURN, s.bot_think_delay, self._timed(self._bot_think))
        elif state.status is GameStatus.REVEAL:
            if reveal_complete(state):
                self.scheduler.schedule(TURN, s.finish_reveal_delay, self._timed(self._finish_reveal))
            else:
                seat = state.reveal_order[state.reveal_state.player_index + 1]
                delay = s.reveal_skip_delay if state.players[seat].is_eliminated else s.reveal_step_delay
                self.scheduler.schedule(TURN, delay, self._timed(self._reveal_step))
        elif state.status is GameStatus.ROUND_OVER:
            self.scheduler.schedule(TURN, s.round_over_delay, self._timed(self._next_round))
        else:
            self.scheduler.cancel(TURN)

    async def _bot_think(self) -> None:
        bot = self.engine.state.current_player
        self._mutate(SetMessage(f"{bot.name} is thinking..."))
        s = self.settings
        delay = self.rng.uniform(s.bot_action_delay_min, max(s.bot_action_delay_min, s.bot_action_delay_max))
        self.scheduler.schedule(TURN, delay, self._timed(self._bot_act))
        await self._publish()

    async def _bot_act(self) -> None:
        state = self.engine.state
        index = state.current_player_index
        view = self.engine.get_view(index)
        action = decide_bot_action(
            state.players[index],
            state.current_bet,
            state.previous_bet,
            state.total_dice_in_play,
            len(active_players(state)),
            view["is_blind"],
            self.rng,
            self.personality,
        )
        if not await self._apply(action, actor=index):
            logger.warning("Room %s: bot %d move %s was rejected, doubting instead", self.room_id, index, action)
            if not await self._apply(Doubt(), actor=index):
                logger.error("Room %s: bot %d has no legal move", self.room_id, index)

    async def _reveal_step(self) -> None:
        await self._apply(RevealNextPlayer())

    async def _finish_reveal(self) -> None:
        await self._apply(FinishReveal())

    async def _next_round(self) -> None:
        await self._apply(NextRound())

    async def close(self) -> None:
        """Tear the room down: stop timers and intent consumption. Nothing fires afterwards."""
        self._closed = True
        await self.scheduler.close()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.room.close()


class HostRegistry:
    """
    One live HostSession per room id, for a process hosting several rooms.
    Rooms share nothing but the relay store.
    """
    def __init__(self, store: RelayStore, settings: Optional[RoomSettings] = None):
        self.store = store
        self.settings = settings or default_settings
        self._sessions: Dict[str, HostSession] = {}

    async def open_room(self, room_id: str, seat: Union[int, str] = 0,
                        rng: Optional[random.Random] = None) -> HostSession:
        session = self._sessions.get(room_id)
        if session is not None:
            return session
        room = Room(self.store, room_id, role=HOST, seat=seat, settings=self.settings)
        session = HostSession(room, settings=self.settings, rng=rng)
        await session.open()
        self._sessions[room_id] = session
        return session

    def get(self, room_id: str) -> Optional[HostSession]:
        return self._sessions.get(room_id)

    def __len__(self) -> int:
        return len(self._sessions)

    async def close_room(self, room_id: str) -> None:
        session = self._sessions.pop(room_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        for room_id in list(self._sessions):
            await self.close_room(room_id)
