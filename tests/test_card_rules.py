from collections import Counter

import numpy as np
import pytest

from kitten_server.domain.card_rules import (
    CANONICAL_DECK,
    CARD_GLYPHS,
    CardKind,
    Effect,
    Outcome,
    exhausted,
    pick_position,
    resolve,
    shuffled_deck,
)


def test_canonical_deck_composition():
    assert Counter(CANONICAL_DECK) == {
        CardKind.CAT: 2,
        CardKind.DEFUSE: 1,
        CardKind.SHUFFLE: 1,
        CardKind.EXPLODING_KITTEN: 1,
    }


def test_shuffled_deck_keeps_composition():
    rng = np.random.default_rng(0)
    for _ in range(20):
        deck = shuffled_deck(rng)
        assert len(deck) == 5
        assert Counter(deck) == Counter(CANONICAL_DECK)


def test_shuffled_deck_produces_different_orders():
    rng = np.random.default_rng(0)
    orders = {tuple(shuffled_deck(rng)) for _ in range(50)}
    assert len(orders) > 1


def test_every_kind_has_a_glyph():
    assert set(CARD_GLYPHS) == set(CardKind)
    assert CARD_GLYPHS[CardKind.EXPLODING_KITTEN] == "\U0001f4a3"


def test_pick_position_stays_in_range():
    rng = np.random.default_rng(3)
    picks = {pick_position(rng, 4) for _ in range(200)}
    assert picks == {0, 1, 2, 3}


def test_pick_position_rejects_empty_deck():
    with pytest.raises(ValueError):
        pick_position(np.random.default_rng(), 0)


@pytest.mark.parametrize(
    "kind, charges, outcome, effects",
    [
        (CardKind.CAT, 0, Outcome.CAT_DRAWN, ()),
        (CardKind.CAT, 2, Outcome.CAT_DRAWN, ()),
        (CardKind.DEFUSE, 0, Outcome.DEFUSE_ACQUIRED, (Effect.ADD_DEFUSE,)),
        (CardKind.SHUFFLE, 1, Outcome.DECK_RESHUFFLED, (Effect.RESHUFFLE,)),
        (CardKind.EXPLODING_KITTEN, 1, Outcome.DEFUSED, (Effect.CONSUME_DEFUSE,)),
        (
            CardKind.EXPLODING_KITTEN,
            0,
            Outcome.PLAYER_LOST,
            (Effect.RECORD_LOSS, Effect.RESHUFFLE),
        ),
    ],
)
def test_resolve_transition_table(kind, charges, outcome, effects):
    resolution = resolve(kind, charges)
    assert resolution.outcome == outcome
    assert resolution.effects == effects
    assert resolution.card == kind
    assert resolution.glyph == CARD_GLYPHS[kind]


def test_only_losing_outcomes_change_stats():
    assert resolve(CardKind.EXPLODING_KITTEN, 0).changes_stats
    assert exhausted().changes_stats
    for kind in (CardKind.CAT, CardKind.DEFUSE, CardKind.SHUFFLE):
        assert not resolve(kind, 0).changes_stats
    assert not resolve(CardKind.EXPLODING_KITTEN, 1).changes_stats


def test_exhausted_has_no_card():
    resolution = exhausted()
    assert resolution.outcome == Outcome.DECK_EXHAUSTED
    assert resolution.card is None
    assert resolution.glyph is None
    assert resolution.effects == (Effect.RECORD_LOSS,)
    assert resolution.message
