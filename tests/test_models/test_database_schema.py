"""Unit tests for the persisted schema contract and model-level validation.

These tests validate the schema definitions and check the initial migration
against them on a throwaway SQLite file.
"""

import importlib.util
from decimal import Decimal
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from core.errors import ValidationError
from models.database import (
    Base,
    IntEnumType,
    ProcessingQueue,
    SentimentAnalysis,
    SocialMediaPost,
    TrendAnalysis,
    TrendKeyword,
    User,
    quantize_score,
)
from models.enums import PostStatus, SentimentType, UserRole


def index_names(model):
    return {index.name for index in model.__table__.indexes}


class TestTableNames:
    def test_tables_use_pascal_case_names(self):
        assert set(Base.metadata.tables) == {
            "SocialMediaPosts",
            "SentimentAnalyses",
            "TrendAnalyses",
            "TrendKeywords",
            "ProcessingQueue",
            "Users",
        }

    def test_post_columns(self):
        columns = {c.name for c in SocialMediaPost.__table__.columns}
        assert columns == {
            "Id",
            "Content",
            "Platform",
            "UserId",
            "UserName",
            "Timestamp",
            "CreatedAt",
            "ProcessedAt",
            "Status",
            "SourceUrl",
            "SourceId",
            "UpVotes",
            "DownVotes",
            "CommentCount",
            "Language",
            "RawMetadata",
            "IsDeleted",
        }

    def test_trend_keyword_composite_primary_key(self):
        pk = [c.name for c in TrendKeyword.__table__.primary_key.columns]
        assert pk == ["PostId", "TrendAnalysisId", "Keyword"]


class TestIndexes:
    def test_post_indexes(self):
        assert index_names(SocialMediaPost) == {
            "IX_SocialMediaPosts_SourceId_Platform",
            "IX_SocialMediaPosts_Platform_Timestamp",
            "IX_SocialMediaPosts_Status_CreatedAt",
            "IX_SocialMediaPosts_ProcessedAt",
            "IX_SocialMediaPosts_Timestamp_Include",
        }

    def test_source_index_is_unique(self):
        index = next(
            i for i in SocialMediaPost.__table__.indexes if i.name == "IX_SocialMediaPosts_SourceId_Platform"
        )
        assert index.unique is True

    def test_sentiment_indexes(self):
        assert index_names(SentimentAnalysis) == {
            "IX_SentimentAnalysis_PostId",
            "IX_SentimentAnalysis_OverallSentiment_AnalyzedAt",
            "IX_SentimentAnalysis_ConfidenceScore",
        }

    def test_trend_indexes(self):
        assert index_names(TrendAnalysis) == {
            "IX_TrendAnalysis_Keyword_Platform_TimeWindow",
            "IX_TrendAnalysis_TrendScore_TimeWindow",
            "IX_TrendAnalysis_Platform_TimeWindow",
            "IX_TrendAnalysis_TimeWindowStart",
        }
        assert index_names(TrendKeyword) == {
            "IX_TrendKeywords_Keyword",
            "IX_TrendKeywords_RelevanceScore",
            "IX_TrendKeywords_PostId_RelevanceScore",
            "IX_TrendKeywords_TrendAnalysisId",
        }

    def test_queue_indexes(self):
        assert index_names(ProcessingQueue) == {
            "IX_ProcessingQueue_Status_Priority_CreatedAt",
            "IX_ProcessingQueue_PostId",
            "IX_ProcessingQueue_Status_RetryCount",
        }

    def test_user_indexes(self):
        assert index_names(User) == {"IX_Users_Email", "IX_Users_ApiKey", "IX_Users_Role_IsActive"}


def load_initial_migration():
    path = Path(__file__).resolve().parents[2] / "migrations" / "versions" / "0001_initial_schema.py"
    spec = importlib.util.spec_from_file_location("initial_schema_migration", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated(tmp_path):
    """A SQLite database built by the initial migration alone."""
    engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    migration = load_initial_migration()
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
    yield engine, migration
    engine.dispose()


class TestInitialMigration:
    def test_creates_every_mapped_table(self, migrated):
        engine, _ = migrated
        assert set(inspect(engine).get_table_names()) == set(Base.metadata.tables)

    def test_columns_match_models(self, migrated):
        engine, _ = migrated
        inspector = inspect(engine)
        for name, table in Base.metadata.tables.items():
            migrated_columns = {column["name"] for column in inspector.get_columns(name)}
            assert migrated_columns == {column.name for column in table.columns}, name

    def test_indexes_match_models(self, migrated):
        engine, _ = migrated
        inspector = inspect(engine)
        for name, table in Base.metadata.tables.items():
            migrated_indexes = {index["name"]: bool(index["unique"]) for index in inspector.get_indexes(name)}
            assert migrated_indexes == {index.name: bool(index.unique) for index in table.indexes}, name

    def test_downgrade_drops_everything(self, migrated):
        engine, migration = migrated
        with engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                migration.downgrade()
        assert inspect(engine).get_table_names() == []


class TestColumnTypes:
    def test_scores_are_numeric_5_4(self):
        for name in ("PositiveScore", "NegativeScore", "NeutralScore", "ConfidenceScore", "SarcasmScore"):
            column = SentimentAnalysis.__table__.columns[name]
            assert (column.type.precision, column.type.scale) == (5, 4)

    def test_trend_score_is_numeric_8_4(self):
        column = TrendAnalysis.__table__.columns["TrendScore"]
        assert (column.type.precision, column.type.scale) == (8, 4)

    def test_foreign_keys_cascade(self):
        for model in (SentimentAnalysis, ProcessingQueue, TrendKeyword):
            fk = next(iter(model.__table__.columns["PostId"].foreign_keys))
            assert fk.ondelete == "CASCADE"
            assert fk.column.table.name == "SocialMediaPosts"

    def test_enum_columns_store_integers(self):
        enum_type = IntEnumType(SentimentType)
        assert enum_type.process_bind_param(SentimentType.VERY_NEGATIVE, None) == -2
        assert enum_type.process_result_value(2, None) is SentimentType.VERY_POSITIVE
        assert enum_type.process_bind_param(None, None) is None


class TestQuantizeScore:
    def test_rounds_half_up_to_four_places(self):
        assert quantize_score("positiveScore", 0.12345) == Decimal("0.1235")

    def test_clamps_into_unit_interval(self):
        assert quantize_score("positiveScore", 1.5) == Decimal("1.0000")
        assert quantize_score("positiveScore", -0.2) == Decimal("0.0000")

    def test_custom_bounds(self):
        assert quantize_score("avgSentimentScore", -3, lower=Decimal("-1")) == Decimal("-1.0000")
        assert quantize_score("trendScore", 123.456789, lower=None, upper=None) == Decimal("123.4568")

    @pytest.mark.parametrize("value", [None, "abc", float("nan")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            quantize_score("confidenceScore", value)
        assert exc_info.value.details[0]["field"] == "confidenceScore"


class TestModelValidation:
    def test_sentiment_scores_are_quantized_on_assignment(self):
        analysis = SentimentAnalysis(positive_score=0.8, negative_score=0.05, neutral_score=0.15)
        assert analysis.positive_score == Decimal("0.8000")
        assert analysis.negative_score == Decimal("0.0500")

    def test_overall_sentiment_must_be_in_range(self):
        with pytest.raises(ValidationError) as exc_info:
            SentimentAnalysis(overall_sentiment=5)
        assert exc_info.value.details[0]["code"] == "INVALID_ENUM"

    def test_content_over_limit_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            SocialMediaPost(content="x" * 4001)
        detail = exc_info.value.details[0]
        assert detail["field"] == "content"
        assert detail["code"] == "MAX_LENGTH"

    def test_content_at_limit_is_accepted(self):
        post = SocialMediaPost(content="x" * 4000)
        assert len(post.content) == 4000

    def test_blank_platform_is_rejected(self):
        with pytest.raises(ValidationError):
            SocialMediaPost(platform="   ")

    def test_negative_counter_is_rejected(self):
        with pytest.raises(ValidationError):
            SocialMediaPost(up_votes=-1)

    def test_avg_sentiment_clamped_to_signed_range(self):
        trend = TrendAnalysis(avg_sentiment_score=-1.5)
        assert trend.avg_sentiment_score == Decimal("-1.0000")

    def test_trend_score_at_column_limit_is_accepted(self):
        assert TrendAnalysis(trend_score=-9999.9999).trend_score == Decimal("-9999.9999")

    @pytest.mark.parametrize("value", [123456.5, 10000, -10000, 9999.99995, 1e30])
    def test_trend_score_beyond_column_is_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            TrendAnalysis(trend_score=value)
        detail = exc_info.value.details[0]
        assert (detail["field"], detail["code"]) == ("trendScore", "OUT_OF_RANGE")

    def test_user_email_is_normalized(self):
        user = User(email="  Ana@Example.COM ")
        assert user.email == "ana@example.com"

    def test_user_email_requires_at_sign(self):
        with pytest.raises(ValidationError):
            User(email="not-an-email")

    def test_error_message_over_limit_is_rejected(self):
        with pytest.raises(ValidationError):
            ProcessingQueue(error_message="e" * 2001)


class TestConsistency:
    def test_dominant_polarity(self):
        analysis = SentimentAnalysis(positive_score=0.7, negative_score=0.1, neutral_score=0.2)
        assert analysis.dominant_polarity() == "positive"

    def test_inconsistent_overall_sentiment(self):
        analysis = SentimentAnalysis(
            positive_score=0.7,
            negative_score=0.1,
            neutral_score=0.2,
            overall_sentiment=SentimentType.NEGATIVE,
        )
        assert analysis.is_consistent() is False

    def test_neutral_dominant_is_always_consistent(self):
        analysis = SentimentAnalysis(
            positive_score=0.1,
            negative_score=0.2,
            neutral_score=0.7,
            overall_sentiment=SentimentType.VERY_POSITIVE,
        )
        assert analysis.is_consistent() is True


class TestEnumValues:
    def test_post_status_values(self):
        assert [int(s) for s in PostStatus] == [0, 1, 2, 3, 4]

    def test_user_role_values(self):
        assert [int(r) for r in UserRole] == [0, 1, 2]
