"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JsonDocument = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create posts, analyses, trends, keyword links, queue and users."""
    op.create_table(
        "SocialMediaPosts",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column("Content", sa.String(4000), nullable=False),
        sa.Column("Platform", sa.String(50), nullable=False),
        sa.Column("UserId", sa.String(100), nullable=False),
        sa.Column("UserName", sa.String(255), nullable=False),
        sa.Column("Timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("ProcessedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("Status", sa.Integer(), nullable=False),
        sa.Column("SourceUrl", sa.String(2000), nullable=True),
        sa.Column("SourceId", sa.String(100), nullable=True),
        sa.Column("UpVotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("DownVotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("CommentCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("Language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("RawMetadata", JsonDocument, nullable=True),
        sa.Column("IsDeleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index(
        "IX_SocialMediaPosts_SourceId_Platform", "SocialMediaPosts", ["SourceId", "Platform"], unique=True
    )
    op.create_index("IX_SocialMediaPosts_Platform_Timestamp", "SocialMediaPosts", ["Platform", "Timestamp"])
    op.create_index("IX_SocialMediaPosts_Status_CreatedAt", "SocialMediaPosts", ["Status", "CreatedAt"])
    op.create_index(
        "IX_SocialMediaPosts_ProcessedAt",
        "SocialMediaPosts",
        ["ProcessedAt"],
        postgresql_where=sa.text('"ProcessedAt" IS NOT NULL'),
        sqlite_where=sa.text('"ProcessedAt" IS NOT NULL'),
    )
    op.create_index(
        "IX_SocialMediaPosts_Timestamp_Include",
        "SocialMediaPosts",
        ["Timestamp"],
        postgresql_include=["Platform", "Status", "UserId"],
    )

    op.create_table(
        "SentimentAnalyses",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column(
            "PostId", sa.Uuid(), sa.ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("PositiveScore", sa.Numeric(5, 4), nullable=False),
        sa.Column("NegativeScore", sa.Numeric(5, 4), nullable=False),
        sa.Column("NeutralScore", sa.Numeric(5, 4), nullable=False),
        sa.Column("OverallSentiment", sa.Integer(), nullable=False),
        sa.Column("ConfidenceScore", sa.Numeric(5, 4), nullable=False),
        sa.Column("IsSarcastic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("SarcasmScore", sa.Numeric(5, 4), nullable=False, server_default="0"),
        sa.Column("ModelVersion", sa.String(50), nullable=False),
        sa.Column("AnalyzedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("ProcessingTime", sa.Interval(), nullable=False),
        sa.Column("ExtractedKeywords", JsonDocument, nullable=True),
        sa.Column("ExtractedEntities", JsonDocument, nullable=True),
        sa.Column("DetailedScores", JsonDocument, nullable=True),
    )
    op.create_index("IX_SentimentAnalysis_PostId", "SentimentAnalyses", ["PostId"], unique=True)
    op.create_index(
        "IX_SentimentAnalysis_OverallSentiment_AnalyzedAt",
        "SentimentAnalyses",
        ["OverallSentiment", "AnalyzedAt"],
    )
    op.create_index("IX_SentimentAnalysis_ConfidenceScore", "SentimentAnalyses", ["ConfidenceScore"])

    op.create_table(
        "TrendAnalyses",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column("Keyword", sa.String(200), nullable=False),
        sa.Column("Platform", sa.String(50), nullable=False),
        sa.Column("TrendScore", sa.Numeric(8, 4), nullable=False),
        sa.Column("MentionCount", sa.Integer(), nullable=False),
        sa.Column("AvgSentimentScore", sa.Numeric(5, 4), nullable=False),
        sa.Column("TimeWindowStart", sa.DateTime(timezone=True), nullable=False),
        sa.Column("TimeWindowEnd", sa.DateTime(timezone=True), nullable=False),
        sa.Column("WindowType", sa.Integer(), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("RelatedKeywords", JsonDocument, nullable=True),
        sa.Column("GeographicData", JsonDocument, nullable=True),
    )
    op.create_index(
        "IX_TrendAnalysis_Keyword_Platform_TimeWindow",
        "TrendAnalyses",
        ["Keyword", "Platform", "TimeWindowStart"],
    )
    op.create_index("IX_TrendAnalysis_TrendScore_TimeWindow", "TrendAnalyses", ["TrendScore", "TimeWindowStart"])
    op.create_index("IX_TrendAnalysis_Platform_TimeWindow", "TrendAnalyses", ["Platform", "TimeWindowStart"])
    op.create_index("IX_TrendAnalysis_TimeWindowStart", "TrendAnalyses", ["TimeWindowStart"])

    op.create_table(
        "TrendKeywords",
        sa.Column(
            "PostId", sa.Uuid(), sa.ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "TrendAnalysisId", sa.Uuid(), sa.ForeignKey("TrendAnalyses.Id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("Keyword", sa.String(200), primary_key=True),
        sa.Column("RelevanceScore", sa.Numeric(5, 4), nullable=False),
    )
    op.create_index("IX_TrendKeywords_Keyword", "TrendKeywords", ["Keyword"])
    op.create_index("IX_TrendKeywords_RelevanceScore", "TrendKeywords", ["RelevanceScore"])
    op.create_index("IX_TrendKeywords_PostId_RelevanceScore", "TrendKeywords", ["PostId", "RelevanceScore"])
    op.create_index("IX_TrendKeywords_TrendAnalysisId", "TrendKeywords", ["TrendAnalysisId"])

    op.create_table(
        "ProcessingQueue",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column(
            "PostId", sa.Uuid(), sa.ForeignKey("SocialMediaPosts.Id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("Status", sa.Integer(), nullable=False),
        sa.Column("Priority", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("ProcessedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("RetryCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ErrorMessage", sa.String(2000), nullable=True),
    )
    op.create_index(
        "IX_ProcessingQueue_Status_Priority_CreatedAt", "ProcessingQueue", ["Status", "Priority", "CreatedAt"]
    )
    op.create_index("IX_ProcessingQueue_PostId", "ProcessingQueue", ["PostId"])
    op.create_index("IX_ProcessingQueue_Status_RetryCount", "ProcessingQueue", ["Status", "RetryCount"])

    op.create_table(
        "Users",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column("Email", sa.String(256), nullable=False),
        sa.Column("FirstName", sa.String(100), nullable=False),
        sa.Column("LastName", sa.String(100), nullable=False),
        sa.Column("PasswordHash", sa.String(512), nullable=False),
        sa.Column("Role", sa.Integer(), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("LastLoginAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ApiKey", sa.String(128), nullable=True),
        sa.Column("DailyApiLimit", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("ApiCallsToday", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("IX_Users_Email", "Users", ["Email"], unique=True)
    op.create_index(
        "IX_Users_ApiKey",
        "Users",
        ["ApiKey"],
        unique=True,
        postgresql_where=sa.text('"ApiKey" IS NOT NULL'),
        sqlite_where=sa.text('"ApiKey" IS NOT NULL'),
    )
    op.create_index("IX_Users_Role_IsActive", "Users", ["Role", "IsActive"])


def downgrade() -> None:
    """Drop every table; indexes go with them."""
    op.drop_table("Users")
    op.drop_table("ProcessingQueue")
    op.drop_table("TrendKeywords")
    op.drop_table("TrendAnalyses")
    op.drop_table("SentimentAnalyses")
    op.drop_table("SocialMediaPosts")
