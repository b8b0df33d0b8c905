"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Feed payloads form a tagged union (``kind``): the repository converts ORM
rows into these at the store boundary, so nothing untyped reaches the
normalizer or the ranker.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


# ──────────────────────────── Enums ───────────────────────────────────────

class FeedFilter(str, Enum):
    ALL = "all"
    CASES = "cases"
    THREADS = "threads"
    CLINICS = "clinics"
    PROFESSIONALS = "professionals"


class FeedSort(str, Enum):
    LATEST = "latest"
    TRENDING = "trending"
    MY_NETWORK = "my_network"


class FeedItemType(str, Enum):
    CASE = "case"
    THREAD = "thread"
    CLINIC = "clinic"
    PROFESSIONAL = "professional"


# ──────────────────────────── Users ───────────────────────────────────────

class AuthorSummary(BaseModel):
    """Author/owner details joined onto every feed row."""
    id: str
    full_name: str
    profile_photo_url: Optional[str] = None
    degree: Optional[str] = None
    specialty: Optional[str] = None
    location: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: str
    full_name: str
    role: str
    headline: Optional[str]
    degree: Optional[str]
    specialty: Optional[str]
    location: Optional[str]
    bio: Optional[str]
    profile_photo_url: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class UserStats(BaseModel):
    user_id: str
    follower_count: int
    following_count: int
    case_count: int


class FollowRequest(BaseModel):
    follower_id: str
    following_id: str


# ──────────────────────────── Feed payloads ───────────────────────────────

class CasePayload(BaseModel):
    kind: Literal["case"] = "case"
    id: str
    user_id: str
    title: str
    procedure_type: str
    case_notes: Optional[str] = None
    tags: list[str] = []
    # Object keys in MinIO; replaced by pre-signed URLs during hydration
    before_image_url: Optional[str] = None
    after_image_url: Optional[str] = None
    accessory_photos: list[str] = []
    location: Optional[str] = None
    views_count: int = Field(0, ge=0)
    saves_count: int = Field(0, ge=0)
    created_at: datetime
    author: Optional[AuthorSummary] = None


class ThreadPayload(BaseModel):
    kind: Literal["thread"] = "thread"
    id: str
    author_id: str
    title: str
    body: str
    category: str
    tags: list[str] = []
    image_urls: list[str] = []
    views_count: int = Field(0, ge=0)
    replies_count: int = Field(0, ge=0)
    is_pinned: bool = False
    is_locked: bool = False
    created_at: datetime
    last_activity_at: datetime
    author: Optional[AuthorSummary] = None


class ClinicPayload(BaseModel):
    kind: Literal["clinic"] = "clinic"
    id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    location: str
    logo_url: Optional[str] = None
    services: list[str] = []
    created_at: datetime
    updated_at: datetime
    owner: Optional[AuthorSummary] = None


class ProfessionalPayload(BaseModel):
    kind: Literal["professional"] = "professional"
    id: str
    full_name: str
    role: str
    headline: Optional[str] = None
    degree: Optional[str] = None
    specialty: Optional[str] = None
    location: Optional[str] = None
    profile_photo_url: Optional[str] = None
    created_at: datetime


ContentPayload = Annotated[
    Union[CasePayload, ThreadPayload, ClinicPayload, ProfessionalPayload],
    Field(discriminator="kind"),
]


class FeedItem(BaseModel):
    """A normalised, rankable envelope around one content row. Never persisted."""
    id: str                 # "{type}-{content_id}"
    type: FeedItemType
    payload: ContentPayload
    created_at: datetime
    activity_score: int = Field(0, ge=0)


class FeedPage(BaseModel):
    items: list[FeedItem]
    # True when fetchers were restricted to the viewer's network
    network_scoped: bool = False
    # Size of the network when scoped; 0 means "no network yet", not "no items"
    network_size: Optional[int] = None
    # Types whose fetch failed and contributed nothing to this page
    failed_types: list[FeedItemType] = []


class FeedResponse(FeedPage):
    user_id: str
    filter: FeedFilter
    sort: FeedSort
    limit: int
    offset: int
    latency_ms: float


class FeedPreferences(BaseModel):
    """Per-user feed configuration, passed explicitly into the feed query."""
    show_cases: bool = True
    show_threads: bool = True
    show_clinics: bool = True
    show_professionals: bool = True
    show_network_only: bool = False
    selected_specialties: list[str] = []

    def enabled_types(self) -> set[FeedItemType]:
        enabled = {
            FeedItemType.CASE: self.show_cases,
            FeedItemType.THREAD: self.show_threads,
            FeedItemType.CLINIC: self.show_clinics,
            FeedItemType.PROFESSIONAL: self.show_professionals,
        }
        return {t for t, on in enabled.items() if on}


# ──────────────────────────── Sidebar ─────────────────────────────────────

class ProfessionalSummary(BaseModel):
    id: str
    full_name: str
    profile_photo_url: Optional[str] = None
    degree: Optional[str] = None
    specialty: Optional[str] = None
    location: Optional[str] = None
    headline: Optional[str] = None

    class Config:
        from_attributes = True


class ProcedureCount(BaseModel):
    procedure: str
    count: int


class ThreadSummary(BaseModel):
    id: str
    title: str
    category: str
    replies_count: int
    last_activity_at: datetime

    class Config:
        from_attributes = True


class ClinicSummary(BaseModel):
    id: str
    name: str
    logo_url: Optional[str] = None
    location: str
    updated_at: datetime

    class Config:
        from_attributes = True


class Sidebar(BaseModel):
    suggested_professionals: list[ProfessionalSummary]
    trending_procedures: list[ProcedureCount]
    active_discussions: list[ThreadSummary]
    recent_clinics: list[ClinicSummary]
    # Aggregates that failed and were returned empty
    failed: list[str] = []
