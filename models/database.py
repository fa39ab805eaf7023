"""Database models for the sentiment platform.

Table, column and index names follow the persisted schema contract
(PascalCase), while Python attributes stay snake_case.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Interval,
    Numeric,
    String,
    Uuid,
    false,
    func,
    text,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.types import TypeDecorator

from core import constants as c
from core.errors import ValidationError
from models.enums import PostStatus, SentimentType, TimeWindow, UserRole

Base = declarative_base()

JsonDocument = JSON().with_variant(JSONB(), "postgresql")

SCORE_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntEnumType(TypeDecorator):
    """Stores an IntEnum as its plain integer value."""

    impl = Integer
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


def quantize_score(
    field: str,
    value,
    lower: Optional[Decimal] = ZERO,
    upper: Optional[Decimal] = ONE,
    magnitude_below: Optional[Decimal] = None,
) -> Decimal:
    """Clamp into [lower, upper] and round to 4 decimal places.

    ``magnitude_below`` rejects, rather than clamps, values whose rounded
    absolute value would not fit the column.
    """
    if value is None:
        raise ValidationError(field, "is required", "REQUIRED")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"'{value}' is not a number", "NOT_A_NUMBER") from None
    if not number.is_finite():
        raise ValidationError(field, "must be a finite number", "NOT_A_NUMBER")

    if lower is not None and number < lower:
        number = lower
    if upper is not None and number > upper:
        number = upper
    if magnitude_below is not None and abs(number) >= magnitude_below:
        raise _out_of_range(field, magnitude_below)
    number = number.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)
    # 9999.99995 rounds up to the bound
    if magnitude_below is not None and abs(number) >= magnitude_below:
        raise _out_of_range(field, magnitude_below)
    return number


def _out_of_range(field: str, bound: Decimal) -> ValidationError:
    return ValidationError(field, f"must be greater than -{bound} and less than {bound}", "OUT_OF_RANGE")


def check_length(field: str, value: Optional[str], max_length: int, required: bool = True):
    """Reject missing, blank or over-long strings."""
    if value is None:
        if required:
            raise ValidationError(field, "is required", "REQUIRED")
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string", "INVALID_TYPE")
    if required and not value.strip():
        raise ValidationError(field, "must not be empty", "REQUIRED")
    if len(value) > max_length:
        raise ValidationError(field, f"exceeds maximum length of {max_length}", "MAX_LENGTH")
    return value


class SocialMediaPost(Base):
    """A single ingested social-media item."""

    __tablename__ = "SocialMediaPosts"

    id = Column("Id", Uuid, primary_key=True, default=uuid4)
    content = Column("Content", String(c.MAX_CONTENT_LENGTH), nullable=False)
    platform = Column("Platform", String(c.MAX_PLATFORM_LENGTH), nullable=False)
    user_id = Column("UserId", String(c.MAX_USER_ID_LENGTH), nullable=False)
    user_name = Column("UserName", String(c.MAX_USER_NAME_LENGTH), nullable=False)

    # Timestamps
    timestamp = Column("Timestamp", DateTime(timezone=True), nullable=False)
    created_at = Column(
        "CreatedAt", DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    processed_at = Column("ProcessedAt", DateTime(timezone=True), nullable=True)

    status = Column(
        "Status", IntEnumType(PostStatus), nullable=False, default=PostStatus.PENDING
    )

    # Provenance
    source_url = Column("SourceUrl", String(c.MAX_SOURCE_URL_LENGTH), nullable=True)
    source_id = Column("SourceId", String(c.MAX_SOURCE_ID_LENGTH), nullable=True)

    # Engagement
    up_votes = Column("UpVotes", Integer, nullable=False, default=0, server_default="0")
    down_votes = Column("DownVotes", Integer, nullable=False, default=0, server_default="0")
    comment_count = Column("CommentCount", Integer, nullable=False, default=0, server_default="0")

    language = Column(
        "Language",
        String(c.MAX_LANGUAGE_LENGTH),
        nullable=False,
        default=c.DEFAULT_LANGUAGE,
        server_default=c.DEFAULT_LANGUAGE,
    )
    raw_metadata = Column("RawMetadata", JsonDocument, nullable=True)
    is_deleted = Column("IsDeleted", Boolean, nullable=False, default=False, server_default=false())

    sentiment_analysis = relationship(
        "SentimentAnalysis",
        back_populates="post",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    queue_entries = relationship(
        "ProcessingQueue", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )
    trend_keywords = relationship(
        "TrendKeyword", back_populates="post", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("IX_SocialMediaPosts_SourceId_Platform", "SourceId", "Platform", unique=True),
        Index("IX_SocialMediaPosts_Platform_Timestamp", "Platform", "Timestamp"),
        Index("IX_SocialMediaPosts_Status_CreatedAt", "Status", "CreatedAt"),
        Index(
            "IX_SocialMediaPosts_ProcessedAt",
            "ProcessedAt",
            postgresql_where=text('"ProcessedAt" IS NOT NULL'),
            sqlite_where=text('"ProcessedAt" IS NOT NULL'),
        ),
        Index(
            "IX_SocialMediaPosts_Timestamp_Include",
            "Timestamp",
            postgresql_include=["Platform", "Status", "UserId"],
        ),
    )

    @validates("content")
    def _validate_content(self, key, value):
        return check_length("content", value, c.MAX_CONTENT_LENGTH)

    @validates("platform")
    def _validate_platform(self, key, value):
        return check_length("platform", value, c.MAX_PLATFORM_LENGTH)

    @validates("user_id")
    def _validate_user_id(self, key, value):
        return check_length("userId", value, c.MAX_USER_ID_LENGTH)

    @validates("user_name")
    def _validate_user_name(self, key, value):
        return check_length("userName", value, c.MAX_USER_NAME_LENGTH)

    @validates("source_url")
    def _validate_source_url(self, key, value):
        return check_length("sourceUrl", value, c.MAX_SOURCE_URL_LENGTH, required=False)

    @validates("source_id")
    def _validate_source_id(self, key, value):
        return check_length("sourceId", value, c.MAX_SOURCE_ID_LENGTH, required=False)

    @validates("language")
    def _validate_language(self, key, value):
        return check_length("language", value, c.MAX_LANGUAGE_LENGTH)

    @validates("up_votes", "down_votes", "comment_count")
    def _validate_counter(self, key, value):
        if value is not None and value < 0:
            raise ValidationError(key, "must not be negative", "OUT_OF_RANGE")
        return value

    def __repr__(self) -> str:
        return f"<SocialMediaPost id={self.id} platform={self.platform} status={self.status}>"


class SentimentAnalysis(Base):
    """Exactly one sentiment result per post."""

    __tablename__ = "SentimentAnalyses"

    id = Column("Id", Uuid, primary_key=True, default=uuid4)
    post_id = Column(
        "PostId", Uuid, ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"), nullable=False
    )

    positive_score = Column("PositiveScore", Numeric(5, 4), nullable=False)
    negative_score = Column("NegativeScore", Numeric(5, 4), nullable=False)
    neutral_score = Column("NeutralScore", Numeric(5, 4), nullable=False)
    overall_sentiment = Column("OverallSentiment", IntEnumType(SentimentType), nullable=False)
    confidence_score = Column("ConfidenceScore", Numeric(5, 4), nullable=False)

    is_sarcastic = Column("IsSarcastic", Boolean, nullable=False, default=False, server_default=false())
    sarcasm_score = Column(
        "SarcasmScore", Numeric(5, 4), nullable=False, default=ZERO, server_default="0"
    )

    model_version = Column("ModelVersion", String(c.MAX_MODEL_VERSION_LENGTH), nullable=False)
    analyzed_at = Column(
        "AnalyzedAt", DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    processing_time = Column("ProcessingTime", Interval, nullable=False)

    extracted_keywords = Column("ExtractedKeywords", JsonDocument, nullable=True)
    extracted_entities = Column("ExtractedEntities", JsonDocument, nullable=True)
    detailed_scores = Column("DetailedScores", JsonDocument, nullable=True)

    post = relationship("SocialMediaPost", back_populates="sentiment_analysis")

    __table_args__ = (
        Index("IX_SentimentAnalysis_PostId", "PostId", unique=True),
        Index("IX_SentimentAnalysis_OverallSentiment_AnalyzedAt", "OverallSentiment", "AnalyzedAt"),
        Index("IX_SentimentAnalysis_ConfidenceScore", "ConfidenceScore"),
    )

    @validates("positive_score", "negative_score", "neutral_score", "confidence_score", "sarcasm_score")
    def _validate_score(self, key, value):
        return quantize_score(key, value)

    @validates("overall_sentiment")
    def _validate_overall_sentiment(self, key, value):
        try:
            return SentimentType(value)
        except ValueError:
            raise ValidationError("overallSentiment", f"'{value}' is not a sentiment type", "INVALID_ENUM") from None

    @validates("model_version")
    def _validate_model_version(self, key, value):
        return check_length("modelVersion", value, c.MAX_MODEL_VERSION_LENGTH)

    def dominant_polarity(self) -> str:
        """positive/negative/neutral according to the largest class score."""
        scores = {
            "positive": self.positive_score or ZERO,
            "negative": self.negative_score or ZERO,
            "neutral": self.neutral_score or ZERO,
        }
        return max(scores, key=scores.get)

    def is_consistent(self) -> bool:
        """Whether the overall sentiment sign agrees with the dominant score."""
        if self.overall_sentiment is None:
            return True
        dominant = self.dominant_polarity()
        return dominant == "neutral" or dominant == SentimentType(self.overall_sentiment).polarity


class TrendAnalysis(Base):
    """Aggregation over one keyword within a time window. Append-only."""

    __tablename__ = "TrendAnalyses"

    id = Column("Id", Uuid, primary_key=True, default=uuid4)
    keyword = Column("Keyword", String(c.MAX_KEYWORD_LENGTH), nullable=False)
    platform = Column("Platform", String(c.MAX_PLATFORM_LENGTH), nullable=False)
    trend_score = Column("TrendScore", Numeric(8, 4), nullable=False)
    mention_count = Column("MentionCount", Integer, nullable=False, default=0)
    avg_sentiment_score = Column("AvgSentimentScore", Numeric(5, 4), nullable=False)
    time_window_start = Column("TimeWindowStart", DateTime(timezone=True), nullable=False)
    time_window_end = Column("TimeWindowEnd", DateTime(timezone=True), nullable=False)
    window_type = Column("WindowType", IntEnumType(TimeWindow), nullable=False)
    created_at = Column(
        "CreatedAt", DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    related_keywords = Column("RelatedKeywords", JsonDocument, nullable=True)
    geographic_data = Column("GeographicData", JsonDocument, nullable=True)

    trend_keywords = relationship(
        "TrendKeyword",
        back_populates="trend_analysis",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("IX_TrendAnalysis_Keyword_Platform_TimeWindow", "Keyword", "Platform", "TimeWindowStart"),
        Index("IX_TrendAnalysis_TrendScore_TimeWindow", "TrendScore", "TimeWindowStart"),
        Index("IX_TrendAnalysis_Platform_TimeWindow", "Platform", "TimeWindowStart"),
        Index("IX_TrendAnalysis_TimeWindowStart", "TimeWindowStart"),
    )

    @validates("keyword")
    def _validate_keyword(self, key, value):
        return check_length("keyword", value, c.MAX_KEYWORD_LENGTH)

    @validates("platform")
    def _validate_platform(self, key, value):
        return check_length("platform", value, c.MAX_PLATFORM_LENGTH)

    @validates("trend_score")
    def _validate_trend_score(self, key, value):
        return quantize_score(
            "trendScore", value, lower=None, upper=None, magnitude_below=Decimal(c.MAX_TREND_SCORE_MAGNITUDE)
        )

    @validates("avg_sentiment_score")
    def _validate_avg_sentiment(self, key, value):
        return quantize_score("avgSentimentScore", value, lower=Decimal("-1"), upper=ONE)

    @validates("mention_count")
    def _validate_mention_count(self, key, value):
        if value is not None and value < 0:
            raise ValidationError("mentionCount", "must not be negative", "OUT_OF_RANGE")
        return value


class TrendKeyword(Base):
    """Keyword relevance of one post inside one trend window."""

    __tablename__ = "TrendKeywords"

    post_id = Column(
        "PostId",
        Uuid,
        ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"),
        primary_key=True,
    )
    trend_analysis_id = Column(
        "TrendAnalysisId",
        Uuid,
        ForeignKey("TrendAnalyses.Id", ondelete="CASCADE"),
        primary_key=True,
    )
    keyword = Column("Keyword", String(c.MAX_KEYWORD_LENGTH), primary_key=True)
    relevance_score = Column("RelevanceScore", Numeric(5, 4), nullable=False)

    post = relationship("SocialMediaPost", back_populates="trend_keywords")
    trend_analysis = relationship("TrendAnalysis", back_populates="trend_keywords")

    __table_args__ = (
        Index("IX_TrendKeywords_Keyword", "Keyword"),
        Index("IX_TrendKeywords_RelevanceScore", "RelevanceScore"),
        Index("IX_TrendKeywords_PostId_RelevanceScore", "PostId", "RelevanceScore"),
        Index("IX_TrendKeywords_TrendAnalysisId", "TrendAnalysisId"),
    )

    @validates("keyword")
    def _validate_keyword(self, key, value):
        return check_length("keyword", value, c.MAX_KEYWORD_LENGTH)

    @validates("relevance_score")
    def _validate_relevance(self, key, value):
        return quantize_score("relevanceScore", value)


class ProcessingQueue(Base):
    """Work-tracking row mediating between ingestion and analysis."""

    __tablename__ = "ProcessingQueue"

    id = Column("Id", Uuid, primary_key=True, default=uuid4)
    post_id = Column(
        "PostId", Uuid, ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"), nullable=False
    )
    status = Column("Status", IntEnumType(PostStatus), nullable=False, default=PostStatus.PENDING)
    priority = Column(
        "Priority", Integer, nullable=False, default=c.DEFAULT_PRIORITY, server_default=str(c.DEFAULT_PRIORITY)
    )
    created_at = Column(
        "CreatedAt", DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    processed_at = Column("ProcessedAt", DateTime(timezone=True), nullable=True)
    retry_count = Column("RetryCount", Integer, nullable=False, default=0, server_default="0")
    error_message = Column("ErrorMessage", String(c.MAX_ERROR_MESSAGE_LENGTH), nullable=True)

    post = relationship("SocialMediaPost", back_populates="queue_entries")

    __table_args__ = (
        Index("IX_ProcessingQueue_Status_Priority_CreatedAt", "Status", "Priority", "CreatedAt"),
        Index("IX_ProcessingQueue_PostId", "PostId"),
        Index("IX_ProcessingQueue_Status_RetryCount", "Status", "RetryCount"),
    )

    @validates("error_message")
    def _validate_error_message(self, key, value):
        return check_length("errorMessage", value, c.MAX_ERROR_MESSAGE_LENGTH, required=False)

    def __repr__(self) -> str:
        return f"<ProcessingQueue id={self.id} post_id={self.post_id} status={self.status}>"


class User(Base):
    """Platform account for dashboard/API access."""

    __tablename__ = "Users"

    id = Column("Id", Uuid, primary_key=True, default=uuid4)
    email = Column("Email", String(c.MAX_EMAIL_LENGTH), nullable=False)
    first_name = Column("FirstName", String(c.MAX_NAME_LENGTH), nullable=False)
    last_name = Column("LastName", String(c.MAX_NAME_LENGTH), nullable=False)
    password_hash = Column("PasswordHash", String(c.MAX_PASSWORD_HASH_LENGTH), nullable=False)
    role = Column("Role", IntEnumType(UserRole), nullable=False, default=UserRole.VIEWER)
    created_at = Column(
        "CreatedAt", DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    last_login_at = Column("LastLoginAt", DateTime(timezone=True), nullable=True)
    is_active = Column("IsActive", Boolean, nullable=False, default=True, server_default=true())
    api_key = Column("ApiKey", String(c.MAX_API_KEY_LENGTH), nullable=True)
    daily_api_limit = Column(
        "DailyApiLimit",
        Integer,
        nullable=False,
        default=c.DEFAULT_DAILY_API_LIMIT,
        server_default=str(c.DEFAULT_DAILY_API_LIMIT),
    )
    api_calls_today = Column("ApiCallsToday", Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index("IX_Users_Email", "Email", unique=True),
        Index(
            "IX_Users_ApiKey",
            "ApiKey",
            unique=True,
            postgresql_where=text('"ApiKey" IS NOT NULL'),
            sqlite_where=text('"ApiKey" IS NOT NULL'),
        ),
        Index("IX_Users_Role_IsActive", "Role", "IsActive"),
    )

    @validates("email")
    def _validate_email(self, key, value):
        check_length("email", value, c.MAX_EMAIL_LENGTH)
        if "@" not in value:
            raise ValidationError("email", "must be an email address", "INVALID_FORMAT")
        return value.strip().lower()

    @validates("first_name")
    def _validate_first_name(self, key, value):
        return check_length("firstName", value, c.MAX_NAME_LENGTH)

    @validates("last_name")
    def _validate_last_name(self, key, value):
        return check_length("lastName", value, c.MAX_NAME_LENGTH)

    @validates("password_hash")
    def _validate_password_hash(self, key, value):
        return check_length("passwordHash", value, c.MAX_PASSWORD_HASH_LENGTH)

    @validates("api_key")
    def _validate_api_key(self, key, value):
        return check_length("apiKey", value, c.MAX_API_KEY_LENGTH, required=False)

    @validates("daily_api_limit", "api_calls_today")
    def _validate_counter(self, key, value):
        if value is not None and value < 0:
            raise ValidationError(key, "must not be negative", "OUT_OF_RANGE")
        return value
