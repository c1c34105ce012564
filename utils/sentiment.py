"""Gemini-backed sentiment classification for citizen feedback."""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Protocol

from google import genai
from google.genai import types

SENTIMENT_ALIASES = {
    "POSITIVE": "Positive",
    "NEGATIVE": "Negative",
    "NEUTRAL": "Neutral",
}


class SentimentClassifierError(Exception):
    """Raised when the classifier cannot return a valid result."""


@dataclass(frozen=True)
class SentimentResult:
    sentiment: str
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"sentiment": self.sentiment, "confidence": self.confidence, "reason": self.reason}


class SentimentClassifier(Protocol):
    def classify(self, text: str) -> SentimentResult: ...


def _first_json_block(text: str) -> str:
    """Extract the first JSON object block from free-form text."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def _safe_json_loads(raw_text: str) -> Dict[str, Any]:
    """Parse JSON robustly, tolerating leading/trailing noise or code fences."""
    cleaned = raw_text.strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*", "", cleaned).strip()
    cleaned = re.sub(r"```$", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return json.loads(_first_json_block(cleaned))


def _normalize_sentiment(value: Any) -> str:
    label = SENTIMENT_ALIASES.get(str(value or "").strip().upper())
    if not label:
        raise SentimentClassifierError(f"Unknown sentiment label: {value!r}")
    return label


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        raise SentimentClassifierError("Invalid numeric field: confidence")
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        raise SentimentClassifierError("Invalid numeric field: confidence")
    if not 0.0 <= confidence <= 1.0:
        raise SentimentClassifierError(f"Confidence out of range: {confidence}")
    return confidence


def parse_classification(payload: Mapping[str, Any]) -> SentimentResult:
    """Validate a raw ``{sentiment, confidence, reason}`` payload."""
    if not isinstance(payload, Mapping):
        raise SentimentClassifierError("Classifier payload is not a JSON object")
    reason = str(payload.get("reason") or "").strip()
    return SentimentResult(
        sentiment=_normalize_sentiment(payload.get("sentiment")),
        confidence=_coerce_confidence(payload.get("confidence")),
        reason=reason[:500],
    )


def build_sentiment_prompt(feedback_text: str) -> str:
    return (
        "You are a sentiment analysis expert reviewing feedback that citizens left after a municipal complaint was handled. "
        "Analyze the sentiment of the following citizen feedback and provide a sentiment (positive, negative, or neutral), "
        "a confidence score between 0 and 1, and a brief reason for your analysis. "
        "Return strict JSON with fields: sentiment, confidence, reason. Do not include markdown. "
        'Example JSON: {"sentiment": "negative", "confidence": 0.82, "reason": "The citizen complains about a slow repair."} '
        f"Feedback: {feedback_text}"
    )


class GeminiSentimentClassifier:
    """Single-shot classifier; one request per call, no retries."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout_seconds: float = 5.0, logger=None) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.logger = logger

    def _client(self) -> genai.Client:
        if not self.api_key:
            raise SentimentClassifierError("GEMINI_API_KEY is not configured")
        return genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )

    def classify(self, text: str) -> SentimentResult:
        client = self._client()
        if self.logger:
            self.logger.info("Dispatching sentiment analysis", extra={"model": self.model, "chars": len(text)})
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=build_sentiment_prompt(text),
                config=types.GenerateContentConfig(response_mime_type="application/json", temperature=0),
            )
        except Exception as exc:
            raise SentimentClassifierError("Sentiment request failed or timed out") from exc

        raw_text = (getattr(response, "text", None) or "").strip()
        if not raw_text:
            raise SentimentClassifierError("Sentiment model returned empty response")
        try:
            payload = _safe_json_loads(raw_text)
        except json.JSONDecodeError as exc:
            raise SentimentClassifierError("Sentiment model returned non-JSON output") from exc
        return parse_classification(payload)


def build_classifier(config: Mapping[str, Any], logger=None) -> GeminiSentimentClassifier:
    return GeminiSentimentClassifier(
        api_key=config.get("GEMINI_API_KEY", ""),
        model=config.get("GEMINI_SENTIMENT_MODEL", "gemini-2.5-flash"),
        timeout_seconds=float(config.get("SENTIMENT_TIMEOUT_SECONDS", 5)),
        logger=logger,
    )
