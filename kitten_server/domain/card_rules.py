"""Card and draw rules that are independent from HTTP and Redis.

Rule of thumb:
- OK: deck composition, shuffling with a given generator, resolving a drawn card.
- Not OK: touching the store, the hub, FastAPI, seeding random generators.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np


class CardKind(str, Enum):
    CAT = "Cat"
    DEFUSE = "Defuse"
    SHUFFLE = "Shuffle"
    EXPLODING_KITTEN = "Exploding Kitten"


CARD_GLYPHS: Dict[CardKind, str] = {
    CardKind.CAT: "\U0001f63c",
    CardKind.DEFUSE: "\U0001f645\u200d\u2642\ufe0f",
    CardKind.SHUFFLE: "\U0001f500",
    CardKind.EXPLODING_KITTEN: "\U0001f4a3",
}

CANONICAL_DECK: Tuple[CardKind, ...] = (
    CardKind.CAT,
    CardKind.CAT,
    CardKind.DEFUSE,
    CardKind.SHUFFLE,
    CardKind.EXPLODING_KITTEN,
)
DECK_SIZE = len(CANONICAL_DECK)


class Outcome(str, Enum):
    CAT_DRAWN = "CatDrawn"
    DEFUSE_ACQUIRED = "DefuseAcquired"
    DECK_RESHUFFLED = "DeckReshuffled"
    DEFUSED = "Defused"
    PLAYER_LOST = "PlayerLost"
    DECK_EXHAUSTED = "DeckExhausted"


class Effect(str, Enum):
    ADD_DEFUSE = "add_defuse"
    CONSUME_DEFUSE = "consume_defuse"
    RESHUFFLE = "reshuffle"
    RECORD_LOSS = "record_loss"


OUTCOME_MESSAGES: Dict[Outcome, str] = {
    Outcome.CAT_DRAWN: "You drew a Cat card! One Cat card has been removed from your deck.",
    Outcome.DEFUSE_ACQUIRED: "You drew a Defuse card! Keep this to defuse an Exploding Kitten.",
    Outcome.DECK_RESHUFFLED: "You drew a Shuffle card! The deck is reshuffled.",
    Outcome.DEFUSED: "You defused the Exploding Kitten using your Defuse card!",
    Outcome.PLAYER_LOST: "You drew an Exploding Kitten! You lose!",
    Outcome.DECK_EXHAUSTED: "No cards left in the deck",
}


@dataclass(frozen=True)
class Resolution:
    outcome: Outcome
    card: Optional[CardKind]
    effects: Tuple[Effect, ...] = ()

    @property
    def glyph(self) -> Optional[str]:
        return CARD_GLYPHS[self.card] if self.card is not None else None

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES[self.outcome]

    @property
    def changes_stats(self) -> bool:
        return Effect.RECORD_LOSS in self.effects


def shuffled_deck(rng: np.random.Generator) -> List[CardKind]:
    """Return the canonical composition in a uniformly random order."""
    return [CANONICAL_DECK[i] for i in rng.permutation(DECK_SIZE)]


def pick_position(rng: np.random.Generator, deck_size: int) -> int:
    """Pick a physical card position so every card is equally likely."""
    if deck_size <= 0:
        raise ValueError("deck_size must be positive")
    return int(rng.integers(deck_size))


def resolve(kind: CardKind, defuse_charges: int) -> Resolution:
    """Map a drawn card and the player's defuse charges to an outcome.

    Each draw is resolved on its own; nothing carries over except the charges.
    """
    if kind == CardKind.CAT:
        return Resolution(Outcome.CAT_DRAWN, kind)
    if kind == CardKind.DEFUSE:
        return Resolution(Outcome.DEFUSE_ACQUIRED, kind, (Effect.ADD_DEFUSE,))
    if kind == CardKind.SHUFFLE:
        return Resolution(Outcome.DECK_RESHUFFLED, kind, (Effect.RESHUFFLE,))
    if kind == CardKind.EXPLODING_KITTEN:
        if defuse_charges > 0:
            return Resolution(Outcome.DEFUSED, kind, (Effect.CONSUME_DEFUSE,))
        return Resolution(
            Outcome.PLAYER_LOST, kind, (Effect.RECORD_LOSS, Effect.RESHUFFLE)
        )
    raise ValueError(f"Unknown card kind: {kind}")


def exhausted() -> Resolution:
    """Resolution for a draw attempted on an empty deck. Scored as a loss."""
    return Resolution(Outcome.DECK_EXHAUSTED, None, (Effect.RECORD_LOSS,))
