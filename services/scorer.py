"""Client for the external sentiment scoring service."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.config import settings
from core.errors import UpstreamError
from core.logger import logger
from models.enums import SentimentType, sentiment_from_score


def keyword_weights(keywords: Iterable[Any]) -> Dict[str, float]:
    """Normalise scorer keywords to {lowercased keyword: relevance}.

    Plain strings get relevance 1.0; dict entries use ``score`` or
    ``relevance``. Duplicates keep the highest relevance.

    Raises:
        ValueError: A named keyword carries a non-numeric relevance.
    """
    weights: Dict[str, float] = {}
    for item in keywords or []:
        if isinstance(item, str):
            name, raw = item, 1.0
        elif isinstance(item, dict):
            name = item.get("keyword") or item.get("text") or item.get("term")
            raw = item.get("score", item.get("relevance", 1.0))
        else:
            continue
        if not name or not str(name).strip():
            continue
        key = str(name).strip().lower()
        try:
            weight = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"keyword '{key}' has non-numeric relevance {raw!r}") from None
        if not math.isfinite(weight):
            raise ValueError(f"keyword '{key}' has non-finite relevance {raw!r}")
        weights[key] = max(weights.get(key, 0.0), weight)
    return weights


@dataclass
class ScoreResult:
    """Scores returned by the scoring service for one text."""

    positive_score: float
    negative_score: float
    neutral_score: float
    overall_sentiment: SentimentType
    confidence_score: float
    model_version: str
    is_sarcastic: bool = False
    sarcasm_score: float = 0.0
    keywords: List[Any] = field(default_factory=list)
    entities: List[Any] = field(default_factory=list)
    detailed_scores: Optional[Dict[str, Any]] = None

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "ScoreResult":
        """Parse the scoring service JSON body.

        ``overallSentiment`` may be an integer (-2..2) or a label; when absent
        it is derived from positive minus negative. Keywords are validated
        here so a malformed body is rejected before anything is stored.
        """
        scores = payload.get("scores") or {}
        positive = float(scores.get("positive", 0.0))
        negative = float(scores.get("negative", 0.0))
        neutral = float(scores.get("neutral", 0.0))

        overall = payload.get("overallSentiment")
        if overall is None:
            sentiment = sentiment_from_score(positive - negative)
        elif isinstance(overall, str):
            sentiment = SentimentType.from_label(overall)
        else:
            sentiment = SentimentType(int(overall))

        keywords = list(payload.get("keywords") or [])
        keyword_weights(keywords)

        sarcasm = payload.get("sarcasm") or {}
        return cls(
            positive_score=positive,
            negative_score=negative,
            neutral_score=neutral,
            overall_sentiment=sentiment,
            confidence_score=float(payload.get("confidence", 0.0)),
            model_version=str(payload.get("modelVersion") or "unknown"),
            is_sarcastic=bool(sarcasm.get("isSarcastic", False)),
            sarcasm_score=float(sarcasm.get("score", 0.0)),
            keywords=keywords,
            entities=list(payload.get("entities") or []),
            detailed_scores=payload.get("detailedScores"),
        )


@runtime_checkable
class ISentimentScorer(Protocol):
    async def score(self, text: str, language: str = "en") -> ScoreResult:
        ...

    async def close(self) -> None:
        ...


def is_retryable(exc: BaseException) -> bool:
    """Transport failures and 5xx responses are retried; 4xx are not."""
    if isinstance(exc, httpx.RequestError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class HttpSentimentScorer:
    """POSTs ``{"text", "language"}`` to the scoring service."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        wait=None,
    ):
        self.url = url or settings.scorer_url
        self.max_attempts = max_attempts or settings.scorer_max_attempts
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.scorer_timeout_seconds
        )
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, min=2, max=10)

    async def score(self, text: str, language: str = "en") -> ScoreResult:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying scorer request (attempt {attempt.retry_state.attempt_number}/{self.max_attempts})"
                        )
                    response = await self.client.post(self.url, json={"text": text, "language": language})
                    response.raise_for_status()
                    payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Scorer returned HTTP {e.response.status_code}")
            raise UpstreamError(f"Scoring service returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Scorer request failed: {e}")
            raise UpstreamError(f"Scoring service unreachable: {e}") from e
        except ValueError as e:
            logger.error(f"Scorer returned invalid JSON: {e}")
            raise UpstreamError("Scoring service returned invalid JSON") from e

        try:
            return ScoreResult.from_response(payload)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed scorer response: {e}")
            raise UpstreamError(f"Malformed scoring service response: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
