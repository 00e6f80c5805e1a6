"""LLM analyst opinion on a flagged transaction, with a conservative local fallback."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import openai
from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError

from .errors import AdvisoryUnavailable
from .knowledge_base import find_case
from .schemas import FraudCase, Transaction

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a Senior Fraud Analyst for a banking institution. Your job is to analyze a suspicious "
    "transaction that has been flagged by our hybrid detection engine. Answer with a single JSON object."
)


class RecommendedAction(str, Enum):
    BLOCK = "BLOCK"
    ALLOW = "ALLOW"
    HOLD = "HOLD"


class AnalysisResult(BaseModel):
    is_likely_fraud: bool = Field(..., description="Whether the analyst believes the transaction is fraudulent")
    confidence: float = Field(..., ge=0, le=100, description="Confidence in the verdict, 0-100")
    reasoning: str = Field(..., description="Short explanation of the verdict")
    recommended_action: RecommendedAction = Field(..., description="BLOCK, ALLOW or HOLD")
    key_risk_factors: List[str] = Field(default_factory=list)


@dataclass
class AdvisoryConfig:
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = field(default=None, repr=False)
    temperature: float = 0.0
    timeout: float = 20.0

    @classmethod
    def from_env(cls) -> "AdvisoryConfig":
        return cls(
            model=os.getenv("FRAUDWATCH_ADVISORY_MODEL", cls.model),
            api_key=os.getenv("OPENAI_API_KEY") or None,
        )


def fallback_result(reason: str) -> AnalysisResult:
    return AnalysisResult(
        is_likely_fraud=False,
        confidence=0,
        reasoning=reason,
        recommended_action=RecommendedAction.HOLD,
        key_risk_factors=["System Error"],
    )


def build_prompt(transaction: Transaction, matched_case: Optional[FraudCase]) -> str:
    if matched_case is not None:
        context = (
            f"System found a similar known fraud pattern "
            f"(Similarity: {transaction.signature_match_score * 100:.0f}%):\n"
            f"Case ID: {matched_case.id}\n"
            f'Narrative: "{matched_case.narrative}"\n'
            f"Fraud Type: {matched_case.type}"
        )
    else:
        context = "No direct match found in the fraud knowledge base."

    return "\n".join(
        [
            "*** TRANSACTION DATA ***",
            f"ID: {transaction.id}",
            f"Amount: ${transaction.amount:.2f}",
            f"Merchant: {transaction.merchant} ({transaction.merchant_id})",
            f'Narrative: "{transaction.narrative}"',
            f"Behavioral Z-Score: {transaction.z_score:.2f} (Values > 3 are anomalous)",
            "",
            "*** KNOWLEDGE BASE CONTEXT ***",
            context,
            "",
            "*** INSTRUCTIONS ***",
            "1. Analyze the risk based on the behavioral score AND the context match.",
            "2. Provide a confidence score (0-100).",
            "3. Explain your reasoning clearly.",
            "4. Recommend an action: BLOCK, ALLOW, or HOLD.",
            "Respond in JSON with the keys is_likely_fraud (boolean), confidence (number), "
            "reasoning (string), recommended_action (string) and key_risk_factors (list of strings).",
        ]
    )


def _describe_failure(exc: openai.OpenAIError) -> str:
    if isinstance(exc, openai.RateLimitError):
        return "API rate limit exceeded. Try again later."
    if isinstance(exc, openai.AuthenticationError):
        return "API authentication failed. Check your key."
    if isinstance(exc, openai.BadRequestError):
        return "Invalid request or expired API key."
    return "AI Analysis unavailable. Check API Key."


class AdvisoryClient:
    """Ask a chat model for a second opinion; never raises on model failures.

    ``client`` may be any object exposing ``chat.completions.create`` with the
    OpenAI signature. When omitted, one is built from the configured API key.
    """

    def __init__(self, config: AdvisoryConfig | None = None, client: object | None = None) -> None:
        self.config = config or AdvisoryConfig.from_env()
        if client is None and self.config.api_key:
            client = OpenAI(api_key=self.config.api_key, timeout=self.config.timeout, max_retries=0)
        self.client = client

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _request(self, prompt: str) -> AnalysisResult:
        if self.client is None:
            raise AdvisoryUnavailable("API Key not configured.")
        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.config.temperature,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content if response.choices else None
        except openai.OpenAIError as exc:
            raise AdvisoryUnavailable(_describe_failure(exc)) from exc
        except Exception as exc:
            # Injected clients are not bound to the SDK's exception hierarchy.
            raise AdvisoryUnavailable(f"AI Analysis unavailable ({type(exc).__name__}).") from exc

        if not content:
            raise AdvisoryUnavailable("Empty response from advisory model.")
        try:
            return AnalysisResult.model_validate_json(content)
        except ValidationError as exc:
            raise AdvisoryUnavailable("Advisory model returned a malformed analysis.") from exc

    def analyze(self, transaction: Transaction, knowledge_base: Sequence[FraudCase]) -> AnalysisResult:
        matched_case = find_case(knowledge_base, transaction.matched_case_id)
        try:
            result = self._request(build_prompt(transaction, matched_case))
        except AdvisoryUnavailable as exc:
            logger.warning("Advisory analysis for %s degraded to HOLD: %s", transaction.id, exc)
            return fallback_result(str(exc))
        logger.info(
            "Advisory analysis for %s: %s (confidence %.0f)",
            transaction.id,
            result.recommended_action.value,
            result.confidence,
        )
        return result
