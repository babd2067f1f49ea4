"""
Shared fixtures: fixed clock, schedulers and a simulated review history
"""
import random
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from revise.fsrs.card import Grade, ReviewLogEntry
from revise.fsrs.memory_model import forgetting_curve
from revise.fsrs.scheduler import Scheduler, SchedulerConfig


T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def simulate_review_log(
    num_items: int = 30,
    reviews_per_item: int = 6,
    seed: int = 7,
    forgetting_speedup: float = 0.6,
) -> List[ReviewLogEntry]:
    """
    Review history of a learner who forgets faster than the default model.

    Each item is graded GOOD on day 0 and then reviewed on (or a few days
    after) its due date. Recall is drawn from the forgetting curve with the
    card's stability scaled by forgetting_speedup.
    """
    rng = random.Random(seed)
    scheduler = Scheduler(config=SchedulerConfig(fuzz_seed=seed))

    for i in range(num_items):
        item_id = f"item-{i:03d}"
        start = T0 + timedelta(hours=i)
        scheduler.add_item(item_id, start)
        scheduler.grade(item_id, Grade.GOOD, start)

        for _ in range(reviews_per_item - 1):
            card = scheduler.card(item_id)
            reviewed_at = card.due_at + timedelta(days=rng.randint(0, 3))
            elapsed = (reviewed_at - card.last_reviewed_at).days
            p_recall = float(forgetting_curve(elapsed, card.stability * forgetting_speedup))
            if rng.random() < p_recall:
                grade = rng.choice([Grade.HARD, Grade.GOOD, Grade.GOOD, Grade.EASY])
            else:
                grade = Grade.AGAIN
            scheduler.grade(item_id, grade, reviewed_at)

    return list(scheduler.review_log())


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def scheduler():
    """Scheduler with a fixed fuzz seed"""
    return Scheduler(config=SchedulerConfig(fuzz_seed=42))


@pytest.fixture
def unfuzzed_scheduler():
    return Scheduler(config=SchedulerConfig(enable_fuzz=False))


@pytest.fixture(scope="session")
def review_log():
    return simulate_review_log()
