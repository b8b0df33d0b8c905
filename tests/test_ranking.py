"""
Normaliser, ranker and paginator: pure functions, no database.
"""
import random
from datetime import datetime, timedelta

import pytest

from network32.exceptions import InvalidArgumentError
from network32.ranking import ScoreWeights, activity_score, normalize, paginate, rank
from network32.schemas import (
    CasePayload,
    ClinicPayload,
    FeedItemType,
    FeedSort,
    ProfessionalPayload,
    ThreadPayload,
)

T0 = datetime(2026, 3, 1, 9, 0, 0)
rng = random.Random(32)


def case(case_id="1", views=0, saves=0, minutes=0):
    return CasePayload(
        id=case_id,
        user_id="u1",
        title="Molar RCT",
        procedure_type="rct",
        before_image_url="b.jpg",
        after_image_url="a.jpg",
        views_count=views,
        saves_count=saves,
        created_at=T0 + timedelta(minutes=minutes),
    )


def thread(thread_id="1", views=0, replies=0, minutes=0):
    return ThreadPayload(
        id=thread_id,
        author_id="u1",
        title="Files for curved canals",
        body="...",
        category="techniques",
        views_count=views,
        replies_count=replies,
        created_at=T0 + timedelta(minutes=minutes),
        last_activity_at=T0 + timedelta(minutes=minutes),
    )


def clinic(clinic_id="1", minutes=0):
    return ClinicPayload(
        id=clinic_id,
        owner_id="u1",
        name="Harbour Endo",
        location="Lisbon",
        created_at=T0 + timedelta(minutes=minutes),
        updated_at=T0 + timedelta(minutes=minutes),
    )


def professional(user_id="1", minutes=0):
    return ProfessionalPayload(
        id=user_id,
        full_name="Dr. Rao",
        role="professional",
        created_at=T0 + timedelta(minutes=minutes),
    )


# ─────────────────────────── Activity score ───────────────────────────────

@pytest.mark.parametrize(
    "views,saves", [(0, 0)] + [(rng.randint(0, 10_000), rng.randint(0, 10_000)) for _ in range(25)]
)
def test_case_score_is_views_plus_twice_saves(views, saves):
    item = normalize(FeedItemType.CASE, case(views=views, saves=saves))
    assert item.activity_score == views + 2 * saves


@pytest.mark.parametrize(
    "views,replies", [(0, 0)] + [(rng.randint(0, 10_000), rng.randint(0, 10_000)) for _ in range(25)]
)
def test_thread_score_is_views_plus_three_times_replies(views, replies):
    item = normalize(FeedItemType.THREAD, thread(views=views, replies=replies))
    assert item.activity_score == views + 3 * replies


def test_clinics_and_professionals_score_zero():
    assert normalize(FeedItemType.CLINIC, clinic()).activity_score == 0
    assert normalize(FeedItemType.PROFESSIONAL, professional()).activity_score == 0


def test_weights_are_configurable():
    weights = ScoreWeights(case_save_weight=5, thread_reply_weight=1)
    assert activity_score(case(views=1, saves=2), weights) == 11
    assert activity_score(thread(views=1, replies=2), weights) == 3


# ─────────────────────────── Normaliser ───────────────────────────────────

def test_normalize_builds_envelope():
    payload = case(case_id="abc", minutes=5)
    item = normalize(FeedItemType.CASE, payload)

    assert item.id == "case-abc"
    assert item.type is FeedItemType.CASE
    assert item.created_at == payload.created_at
    assert item.payload.id == "abc"


def test_normalize_does_not_mutate_input():
    payload = thread(views=4, replies=2)
    before = payload.model_dump()
    normalize(FeedItemType.THREAD, payload)
    assert payload.model_dump() == before


def test_normalize_rejects_mismatched_payload():
    with pytest.raises(TypeError):
        normalize(FeedItemType.CASE, thread())


# ─────────────────────────── Ranker ───────────────────────────────────────

def test_latest_is_strictly_descending_and_idempotent():
    minutes = rng.sample(range(1000), 30)
    items = [normalize(FeedItemType.CASE, case(case_id=str(m), minutes=m)) for m in minutes]

    ranked = rank(items, FeedSort.LATEST)

    stamps = [i.created_at for i in ranked]
    assert all(a > b for a, b in zip(stamps, stamps[1:]))
    assert rank(items, FeedSort.LATEST) == ranked
    assert rank(ranked, FeedSort.LATEST) == ranked


def test_latest_ties_keep_fetch_order():
    items = [
        normalize(FeedItemType.CASE, case(case_id="first", minutes=10)),
        normalize(FeedItemType.THREAD, thread(thread_id="second", minutes=10)),
        normalize(FeedItemType.CLINIC, clinic(clinic_id="newest", minutes=20)),
        normalize(FeedItemType.PROFESSIONAL, professional(user_id="third", minutes=10)),
    ]
    ranked = rank(items, FeedSort.LATEST)
    assert [i.id for i in ranked] == [
        "clinic-newest",
        "case-first",
        "thread-second",
        "professional-third",
    ]


def test_trending_is_non_increasing():
    items = []
    for n in range(40):
        if n % 2:
            items.append(normalize(FeedItemType.CASE, case(str(n), rng.randint(0, 50), rng.randint(0, 50))))
        else:
            items.append(normalize(FeedItemType.THREAD, thread(str(n), rng.randint(0, 50), rng.randint(0, 50))))
    items.append(normalize(FeedItemType.CLINIC, clinic()))

    scores = [i.activity_score for i in rank(items, FeedSort.TRENDING)]
    assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_my_network_orders_like_latest():
    items = [normalize(FeedItemType.CASE, case(str(m), minutes=m)) for m in (3, 9, 1)]
    assert rank(items, FeedSort.MY_NETWORK) == rank(items, FeedSort.LATEST)


def test_rank_returns_new_list():
    items = [normalize(FeedItemType.CASE, case(str(m), minutes=m)) for m in (1, 2)]
    original = list(items)
    rank(items, FeedSort.LATEST)
    assert items == original


def test_rank_rejects_unknown_sort():
    with pytest.raises(InvalidArgumentError):
        rank([], "hot")


# ─────────────────────────── Paginator ────────────────────────────────────

SEQ = [normalize(FeedItemType.CASE, case(str(n), minutes=n)) for n in range(12)]


@pytest.mark.parametrize("offset", range(0, len(SEQ) + 1))
@pytest.mark.parametrize("limit", [0, 1, 5, 12, 50])
def test_paginate_is_a_plain_slice(limit, offset):
    assert paginate(SEQ, limit, offset) == SEQ[offset:min(offset + limit, len(SEQ))]


def test_paginate_past_end_is_empty():
    assert paginate(SEQ, 10, len(SEQ) + 1) == []
    assert paginate(SEQ, 10, 10_000) == []


@pytest.mark.parametrize("limit,offset", [(-1, 0), (10, -1), (1.5, 0), (10, "2"), (True, 0)])
def test_paginate_rejects_bad_window(limit, offset):
    with pytest.raises(InvalidArgumentError):
        paginate(SEQ, limit, offset)
