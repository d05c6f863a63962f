# lambdas/common/models.py
"""
Record models for the ProDentHub tables.

Each model applies the defaults a freshly created record gets and dumps to the
camelCase document stored in DynamoDB. Updates after creation are plain field
writes; nothing here enforces status transitions.
"""
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from lambdas.common.request_parser import InvalidRequestError


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ContentStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    FACEBOOK_POST = "facebook_post"
    BLOG_POST = "blog_post"
    AD_COPY = "ad_copy"
    EMAIL = "email"


class TargetType(str, Enum):
    GROUP = "group"
    PAGE = "page"
    AD_ACCOUNT = "ad_account"


class ApiKeyStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class PaymentStatus(str, Enum):
    CREATED = "created"
    PENDING_PAYMENT = "pending_payment"
    REGISTERED = "registered"
    PAID = "paid"
    FULLY_PAID = "fully_paid"
    ACTIVE = "active"
    CONFIRMED = "confirmed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Accepts and dumps camelCase keys, matching the stored documents."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def build_record(model_cls, data: dict):
    """Validates `data` into `model_cls`, turning pydantic errors into a 400-style error."""
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidRequestError(f"Invalid field '{location}': {first['msg']}")


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower())


# Campaigns
class TargetAudience(CamelModel):
    location: List[str] = Field(default_factory=lambda: ["Australia"])
    profession: List[str] = Field(default_factory=lambda: ["Dentist"])
    exam_status: List[str] = Field(default_factory=lambda: ["Preparing"])
    demographics: Dict[str, Any] = Field(default_factory=dict)


class Budget(CamelModel):
    total: float = 0
    spent: float = 0
    currency: str = "AUD"


class Goals(CamelModel):
    leads: int = 100
    conversions: int = 20
    revenue: float = 5000


class Assets(CamelModel):
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)
    documents: List[str] = Field(default_factory=list)


class ContentSchedule(CamelModel):
    frequency: str = "weekly"
    platforms: List[str] = Field(default_factory=lambda: ["facebook"])
    auto_generate: bool = True
    auto_publish: bool = False
    days_of_week: Optional[List[str]] = None


class CampaignAnalytics(CamelModel):
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0
    ctr: float = 0
    conversion_rate: float = 0
    roas: float = 0


class Campaign(CamelModel):
    campaign_id: str
    name: str
    description: str
    type: str
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: str = Field(default_factory=_now)
    end_date: Optional[str] = None
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    landing_page_url: Optional[str] = None
    target_audience: TargetAudience = Field(default_factory=TargetAudience)
    budget: Budget = Field(default_factory=Budget)
    goals: Goals = Field(default_factory=Goals)
    assets: Assets = Field(default_factory=Assets)
    content_schedule: ContentSchedule = Field(default_factory=ContentSchedule)
    analytics: CampaignAnalytics = Field(default_factory=CampaignAnalytics)

    @classmethod
    def from_request(cls, params: dict) -> "Campaign":
        campaign_id = f"campaign-{slugify(params['name'])}"
        data = {k: v for k, v in params.items() if v is not None}
        data["campaignId"] = campaign_id
        data.setdefault("landingPageUrl", f"https://campaigns.prodenthub.com.au/{campaign_id}/")
        # A new campaign never starts with spend or analytics.
        data.pop("analytics", None)
        campaign = build_record(cls, data)
        campaign.budget.spent = 0
        return campaign


# Content
class ContentMetadata(CamelModel):
    word_count: int = 0
    has_images: bool = False
    hashtags: List[str] = Field(default_factory=list)
    tone: str = "professional"
    template_id: Optional[str] = None
    ai_model: Optional[str] = None
    prompt_tokens: int = 0
    variables: Dict[str, Any] = Field(default_factory=dict)


class ContentAnalytics(CamelModel):
    impressions: int = 0
    clicks: int = 0
    engagement: int = 0
    conversions: int = 0


class Content(CamelModel):
    content_id: str
    type: str
    campaign_id: str
    title: str
    body: str
    status: ContentStatus = ContentStatus.DRAFT
    platform: str = "facebook"
    scheduled_at: Optional[str] = None
    published_at: Optional[str] = None
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    created_by: str = "agent"
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)
    analytics: ContentAnalytics = Field(default_factory=ContentAnalytics)
    ttl: int = 0


# Social targets
class TargetCredentials(CamelModel):
    access_token: str = "use_default"
    token_expiry: str = Field(
        default_factory=lambda: (datetime.now(timezone.utc) + timedelta(days=60)).isoformat()
    )
    permissions: List[str] = Field(default_factory=lambda: ["publish_to_groups", "read_insights"])


class PostingSchedule(CamelModel):
    frequency: str = "3_times_per_week"
    preferred_times: List[str] = Field(default_factory=lambda: ["10:00", "14:00", "19:00"])
    timezone: str = "Australia/Sydney"
    days_of_week: List[str] = Field(default_factory=lambda: ["Monday", "Wednesday", "Friday"])


class TargetAudienceProfile(CamelModel):
    size: int = 0
    location: str = "Australia"
    interests: List[str] = Field(default_factory=list)
    demographics: Dict[str, Any] = Field(default_factory=dict)


class TargetPerformance(CamelModel):
    avg_engagement_rate: float = 0
    avg_reach: float = 0
    total_posts: int = 0
    total_conversions: int = 0


class SocialTarget(CamelModel):
    target_id: str
    platform: str
    type: TargetType
    name: str
    external_id: str
    status: str = "active"
    credentials: TargetCredentials = Field(default_factory=TargetCredentials)
    posting_schedule: PostingSchedule = Field(default_factory=PostingSchedule)
    audience: TargetAudienceProfile = Field(default_factory=TargetAudienceProfile)
    performance: TargetPerformance = Field(default_factory=TargetPerformance)
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


# API keys
class RateLimit(CamelModel):
    requests_per_minute: int = 60
    requests_per_day: int = 10000


class ApiKey(CamelModel):
    key_id: str
    api_key: str
    name: str
    description: str = ""
    status: ApiKeyStatus = ApiKeyStatus.ACTIVE
    permissions: List[str] = Field(default_factory=lambda: ["content:read"])
    rate_limit: RateLimit = Field(default_factory=RateLimit)
    created_at: str = Field(default_factory=_now)
    last_used_at: Optional[str] = None
    expires_at: str
    created_by: str = "admin"
    ip_whitelist: List[str] = Field(default_factory=list)


# Teams
class TeamMember(CamelModel):
    name: str
    email: str
    status: str = "pending"
    share_amount: float = 0


class TeamLeader(CamelModel):
    first_name: str
    last_name: str
    email: str
    country: Optional[str] = None


class Team(CamelModel):
    team_id: str
    campaign_id: str = "team-creation"
    leader_email: str
    leader_first_name: str
    leader_last_name: str
    country: Optional[str] = None
    members: List[TeamMember]
    total_members: int
    plan_type: str = "full-6months"
    total_amount: float
    price_per_member: float
    status: PaymentStatus = PaymentStatus.CREATED
    created_at: str = Field(default_factory=_now)
    expires_at: str
