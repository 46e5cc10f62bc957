import logging
from typing import Dict, List, Optional

import numpy as np

from kitten_server.db import KeyValueStore, parse_count
from kitten_server.domain.card_rules import CardKind, pick_position, shuffled_deck
from kitten_server.exceptions import EmptyDeckError, StorageError
from kitten_server.models.dc_models import LeaderboardEntryModel

SESSION_NAMESPACE = "session"
WIN_NAMESPACE = "win"
LOSE_NAMESPACE = "lose"
DEFUSE_FIELD = "defuse"

# Attempts before giving up on a deck that keeps changing under a draw.
MAX_DRAW_ATTEMPTS = 5


def deck_key(username: str) -> str:
    return f"deck:{username}"


def user_key(username: str) -> str:
    return f"user:{username}"


class DeckStore:
    """Deck lifecycle of every user."""

    def __init__(self, store: KeyValueStore, rng: Optional[np.random.Generator] = None):
        self.store = store
        self.rng = rng if rng is not None else np.random.default_rng()

    async def has_deck(self, username: str) -> bool:
        return await self.store.hash_get(SESSION_NAMESPACE, username) is not None

    async def create_deck(self, username: str) -> bool:
        """Create a shuffled deck if the user has none yet.

        Args:
            username (str): Player who owns the deck

        Returns:
            bool: True if a deck was created, False if one already existed
        """
        deck = shuffled_deck(self.rng)
        created = await self.store.list_create(
            deck_key(username), [card.value for card in deck]
        )
        # The marker outlives the list, which Redis drops once it is drained.
        await self.store.hash_set(SESSION_NAMESPACE, username, "1")
        if created:
            logging.info(f"Deck initialized for user: {username}")
        else:
            logging.info(f"Deck already exists for user: {username}")
        return created

    async def read_deck(self, username: str) -> List[CardKind]:
        return [CardKind(card) for card in await self.store.list_range(deck_key(username))]

    async def draw_random(self, username: str) -> CardKind:
        """Remove one card picked uniformly by position and return its kind.

        Args:
            username (str): Player who draws

        Raises:
            EmptyDeckError: There is no card left to draw
            StorageError: The deck kept changing under every attempt

        Returns:
            CardKind: The drawn card
        """
        key = deck_key(username)
        for _ in range(MAX_DRAW_ATTEMPTS):
            deck = await self.store.list_range(key)
            if not deck:
                raise EmptyDeckError(f"No cards left in the deck for user: {username}")
            drawn = deck[pick_position(self.rng, len(deck))]
            if await self.store.list_remove(key, drawn, 1):
                logging.info(f"User {username} drew card: {drawn}")
                return CardKind(drawn)
            logging.info(f"Deck of {username} changed during the draw, retrying")
        logging.error(f"Deck of {username} kept changing, giving up the draw")
        raise StorageError(f"Deck kept changing while drawing for user: {username}")

    async def reshuffle(self, username: str) -> List[CardKind]:
        """Replace the deck with a freshly shuffled canonical one."""
        deck = shuffled_deck(self.rng)
        await self.store.hash_set(SESSION_NAMESPACE, username, "1")
        await self.store.list_replace(deck_key(username), [card.value for card in deck])
        logging.info(f"Game reset for user: {username} with cards: {[card.value for card in deck]}")
        return deck


class StatsStore:
    """Win/lose counters and defuse charges of every user."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def ensure_initialized(self, username: str) -> None:
        await self.store.hash_set_if_absent(WIN_NAMESPACE, username, "0")
        await self.store.hash_set_if_absent(LOSE_NAMESPACE, username, "0")

    async def record_win(self, username: str) -> int:
        wins = await self.store.hash_increment(WIN_NAMESPACE, username)
        logging.info(f"User {username} has now won {wins} times")
        return wins

    async def record_loss(self, username: str) -> int:
        losses = await self.store.hash_increment(LOSE_NAMESPACE, username)
        logging.info(f"User {username} has now lost {losses} times")
        return losses

    async def get_defuse_charges(self, username: str) -> int:
        return max(parse_count(await self.store.hash_get(user_key(username), DEFUSE_FIELD)), 0)

    async def set_defuse_charges(self, username: str, charges: int) -> None:
        if charges < 0:
            raise ValueError("charges must not be negative")
        await self.store.hash_set(user_key(username), DEFUSE_FIELD, str(charges))

    async def add_defuse_charge(self, username: str) -> int:
        return await self.store.hash_increment(user_key(username), DEFUSE_FIELD, 1)

    async def consume_defuse_charge(self, username: str) -> bool:
        """Spend one defuse charge.

        Returns:
            bool: False if the user had no charge left
        """
        remaining = await self.store.hash_increment(
            user_key(username), DEFUSE_FIELD, -1, minimum=0
        )
        return remaining is not None

    async def snapshot_all(self) -> List[LeaderboardEntryModel]:
        """Join the win and lose counters of every known player.

        Returns:
            List[LeaderboardEntryModel]: Sorted by wins (desc), losses, username
        """
        wins: Dict[str, str] = await self.store.hash_get_all(WIN_NAMESPACE)
        losses: Dict[str, str] = await self.store.hash_get_all(LOSE_NAMESPACE)
        entries = [
            LeaderboardEntryModel(
                username=username,
                wins=parse_count(wins.get(username)),
                losses=parse_count(losses.get(username)),
            )
            for username in set(wins) | set(losses)
        ]
        entries.sort(key=lambda entry: (-entry.wins, entry.losses, entry.username))
        logging.debug(f"Fetched user stats: {entries}")
        return entries
