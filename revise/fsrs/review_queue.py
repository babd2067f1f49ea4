"""
Review Queue

Pure ordering query over a snapshot of card states. Holds no state, so the
result always reflects the cards it is handed.
"""
from datetime import datetime
from typing import Dict, Iterable, List

from .card import CardState, ReviewState

# Lower value is presented first when due times tie
STATE_PRIORITY: Dict[ReviewState, int] = {
    ReviewState.LEARNING: 0,
    ReviewState.RELEARNING: 0,
    ReviewState.REVIEW: 1,
    ReviewState.NEW: 2,
}


def _sort_key(card: CardState):
    return (card.due_at, STATE_PRIORITY[card.review_state], card.item_id)


def due_cards(cards: Iterable[CardState], now: datetime) -> List[CardState]:
    """Unsuspended cards with due_at <= now, earliest first"""
    due = [
        card for card in cards
        if card.review_state != ReviewState.SUSPENDED and card.due_at <= now
    ]
    return sorted(due, key=_sort_key)


def due_items(cards: Iterable[CardState], now: datetime) -> List[str]:
    """Ids of due cards in presentation order"""
    return [card.item_id for card in due_cards(cards, now)]
