"""
Feed item normalisation, ranking and pagination.

Everything here is pure: no I/O, no mutation of inputs.

Activity score (used only by the "trending" sort):
  case    = views_count + case_save_weight   * saves_count
  thread  = views_count + thread_reply_weight * replies_count
  clinic / professional = 0
"""
from dataclasses import dataclass
from typing import Union

from network32.exceptions import InvalidArgumentError
from network32.schemas import (
    CasePayload,
    ClinicPayload,
    FeedItem,
    FeedItemType,
    FeedSort,
    ProfessionalPayload,
    ThreadPayload,
)

Payload = Union[CasePayload, ThreadPayload, ClinicPayload, ProfessionalPayload]

_PAYLOAD_TYPES = {
    FeedItemType.CASE: CasePayload,
    FeedItemType.THREAD: ThreadPayload,
    FeedItemType.CLINIC: ClinicPayload,
    FeedItemType.PROFESSIONAL: ProfessionalPayload,
}


@dataclass(frozen=True)
class ScoreWeights:
    case_save_weight: int = 2
    thread_reply_weight: int = 3


DEFAULT_WEIGHTS = ScoreWeights()


def activity_score(payload: Payload, weights: ScoreWeights = DEFAULT_WEIGHTS) -> int:
    if isinstance(payload, CasePayload):
        return payload.views_count + weights.case_save_weight * payload.saves_count
    if isinstance(payload, ThreadPayload):
        return payload.views_count + weights.thread_reply_weight * payload.replies_count
    return 0


def normalize(
    item_type: FeedItemType,
    payload: Payload,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> FeedItem:
    """Wrap a typed content row in a FeedItem envelope."""
    item_type = FeedItemType(item_type)
    expected = _PAYLOAD_TYPES[item_type]
    if not isinstance(payload, expected):
        raise TypeError(
            f"{item_type.value} item needs a {expected.__name__}, got {type(payload).__name__}"
        )
    return FeedItem(
        id=f"{item_type.value}-{payload.id}",
        type=item_type,
        payload=payload,
        created_at=payload.created_at,
        activity_score=activity_score(payload, weights),
    )


def rank(items: list[FeedItem], sort: FeedSort) -> list[FeedItem]:
    """
    Return a new list ordered for `sort`.

    Both orderings are stable (sorted() keeps the relative order of equal
    keys even with reverse=True), so ties keep their fetch order.
    """
    sort = parse_sort(sort)
    if sort is FeedSort.TRENDING:
        return sorted(items, key=lambda i: i.activity_score, reverse=True)
    # latest and my_network both order by recency; scoping happens upstream
    return sorted(items, key=lambda i: i.created_at, reverse=True)


def paginate(items: list[FeedItem], limit: int, offset: int) -> list[FeedItem]:
    """Plain slice [offset, offset + limit). An offset past the end yields []."""
    validate_window(limit, offset)
    return items[offset:offset + limit]


# ─────────────────────────── Argument checks ──────────────────────────────

def validate_window(limit, offset) -> None:
    for name, value in (("limit", limit), ("offset", offset)):
        # bool is an int subclass but never a meaningful page size
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidArgumentError(f"{name} must be >= 0, got {value}")


def parse_sort(sort) -> FeedSort:
    try:
        return FeedSort(sort)
    except ValueError:
        raise InvalidArgumentError(f"Unknown sort {sort!r}") from None
