"""Game use cases: starting a game and drawing a card.

- Routers should not touch the stores directly; they call this module.
- Card rules live in ``kitten_server.domain.card_rules``; this layer applies their effects.
- Every outcome that changes the win/lose counters is pushed to the leaderboard.
"""

import logging
from typing import List, Optional

from kitten_server.crud import DeckStore, StatsStore
from kitten_server.domain import card_rules
from kitten_server.domain.card_rules import Effect, Resolution
from kitten_server.exceptions import EmptyDeckError, NoSessionError
from kitten_server.manager import ConnectionManager
from kitten_server.models.dc_models import (
    DrawResultModel,
    GameStartModel,
    LeaderboardEntryModel,
)


class SessionManager:
    def __init__(
        self,
        deck_store: DeckStore,
        stats_store: StatsStore,
        hub: Optional[ConnectionManager] = None,
    ):
        self.deck_store = deck_store
        self.stats_store = stats_store
        self.hub = hub

    async def start_game(self, username: str) -> GameStartModel:
        """Start a game, or resume the one the user already has

        Args:
            username (str): Player name, used as the session key

        Returns:
            GameStartModel: Whether the game was resumed and the current deck
        """
        if await self.deck_store.has_deck(username):
            logging.info(f"Resuming game for user: {username}")
            # Heals a session whose first start failed before the counters were written.
            await self.stats_store.ensure_initialized(username)
            deck = await self.deck_store.read_deck(username)
            return GameStartModel(resumed=True, deck=deck)

        logging.info(f"Starting game for user: {username}")
        await self.stats_store.ensure_initialized(username)
        created = await self.deck_store.create_deck(username)
        if created:
            await self.stats_store.set_defuse_charges(username, 0)
        deck = await self.deck_store.read_deck(username)
        await self._publish()
        return GameStartModel(resumed=not created, deck=deck)

    async def draw_card(self, username: str) -> DrawResultModel:
        """Draw one card and apply what it does

        Args:
            username (str): Player who draws

        Raises:
            NoSessionError: The game was not started for this user

        Returns:
            DrawResultModel: Outcome of the draw
        """
        if not await self.deck_store.has_deck(username):
            raise NoSessionError(username)

        logging.info(f"User {username} is drawing a card")
        try:
            drawn = await self.deck_store.draw_random(username)
        except EmptyDeckError:
            logging.info(f"No cards left in the deck for user: {username}")
            resolution = card_rules.exhausted()
        else:
            charges = await self.stats_store.get_defuse_charges(username)
            resolution = card_rules.resolve(drawn, charges)

        resolution = await self._apply(username, resolution)
        logging.info(f"User {username}: {resolution.outcome.value}")
        if resolution.changes_stats:
            await self._publish()

        return DrawResultModel(
            outcome=resolution.outcome,
            card=resolution.card,
            glyph=resolution.glyph,
            message=resolution.message,
            defuse_charges=await self.stats_store.get_defuse_charges(username),
        )

    async def leaderboard(self) -> List[LeaderboardEntryModel]:
        return await self.stats_store.snapshot_all()

    async def _apply(self, username: str, resolution: Resolution) -> Resolution:
        """Apply the side effects of a resolution and return what actually happened."""
        if Effect.CONSUME_DEFUSE in resolution.effects:
            if not await self.stats_store.consume_defuse_charge(username):
                # The charge was spent by a concurrent draw.
                resolution = card_rules.resolve(resolution.card, 0)
            else:
                logging.info(f"User {username} used a Defuse card")

        for effect in resolution.effects:
            if effect == Effect.ADD_DEFUSE:
                await self.stats_store.add_defuse_charge(username)
            elif effect == Effect.RECORD_LOSS:
                await self.stats_store.record_loss(username)
            elif effect == Effect.RESHUFFLE:
                await self.deck_store.reshuffle(username)
                await self.stats_store.set_defuse_charges(username, 0)
        return resolution

    async def _publish(self) -> None:
        if self.hub is not None:
            await self.hub.publish()
