"""
Fireworks.ai vision LLM client for receipt / subscription extraction.

``FireworksClient.extract`` makes exactly one chat-completion call and never
raises: transport errors, HTTP errors and timeouts come back as
``ExtractionOutcome.error``. Once the model has answered, the result always
carries an extraction (possibly the zero-confidence fallback).

The call runs on an ``httpx.AsyncClient`` under ``asyncio.wait_for`` so the
timeout caps the whole request, body included, and cancels it when hit.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from receiptsnap.errors import truncate
from receiptsnap.pipeline.parsing import ParseKind, parse_extraction
from receiptsnap.schemas import ExtractionResult, TokenUsage

logger = logging.getLogger(__name__)

API_URL = "https://api.fireworks.ai/inference/v1/chat/completions"
DEFAULT_MODEL = "accounts/fireworks/models/qwen3-vl-30b-a3b-instruct"
DEFAULT_TIMEOUT = 45.0

EXTRACTION_PROMPT = """You are a receipt and subscription extraction assistant. Extract subscription/payment data from images and return ONLY valid JSON matching this schema:
{
  "subscription_name": string,
  "billing_entity": string | null,
  "amount": number,
  "currency": string (3-letter code like USD, EUR),
  "billing_cycle": "weekly" | "monthly" | "quarterly" | "semi_annual" | "annual" | "one_time" | "unknown",
  "start_date": string | null (YYYY-MM-DD format),
  "next_charge_date": string | null (YYYY-MM-DD format),
  "payment_method": string | null (e.g., "Visa ****1234"),
  "renewal_terms": string | null,
  "cancellation_policy": string | null,
  "cancellation_deadline": string | null (YYYY-MM-DD format),
  "confidence_score": number (0.0 to 1.0),
  "raw_text": string (all readable text from image for OCR fallback)
}

Rules:
- Extract the subscription/service name accurately
- Parse monetary amounts as numbers without currency symbols
- Infer billing cycle from context (e.g., "per month" = monthly)
- Calculate next_charge_date if start_date and billing_cycle are known
- Set confidence_score based on how clearly the data was extracted
- Always include raw_text with all visible text for fallback
- If extraction fails, set confidence_score to 0 and populate raw_text"""

USER_INSTRUCTION = "Extract subscription details from this receipt/screenshot:"


class ExtractionOutcome(BaseModel):
    model: str
    extraction: Optional[ExtractionResult] = None
    raw_response: Optional[str] = None
    # Flat total kept for older callers; token_usage has the breakdown
    tokens_used: Optional[int] = None
    token_usage: Optional[TokenUsage] = None
    parse_kind: Optional[ParseKind] = None
    error: Optional[str] = None
    timed_out: bool = False


def _count(value: Any) -> Optional[int]:
    if value is None:
        return 0
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def read_token_usage(body: dict[str, Any]) -> Optional[TokenUsage]:
    """Usage block of a chat-completion body, or None when absent or malformed."""
    usage = body.get("usage")
    if not isinstance(usage, dict):
        return None
    prompt = _count(usage.get("prompt_tokens"))
    completion = _count(usage.get("completion_tokens"))
    if prompt is None or completion is None:
        logger.warning("Ignoring malformed usage block: %r", usage)
        return None
    total = usage.get("total_tokens")
    total = _count(total) if total is not None else prompt + completion
    if total is None:
        logger.warning("Ignoring malformed usage block: %r", usage)
        return None
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _message_content(body: dict[str, Any]) -> Optional[str]:
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content.strip() else None


class FireworksClient:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        api_url: str = API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, image_bytes: bytes, mime_type: str) -> dict[str, Any]:
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": EXTRACTION_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_INSTRUCTION},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{image_b64}"},
                        },
                    ],
                },
            ],
            "max_tokens": 1024,
            "temperature": 0.1,
            "response_format": {"type": "json_object"},
        }

    def extract(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> ExtractionOutcome:
        """Blocking entry point; runs ``extract_async`` on a fresh event loop."""
        return asyncio.run(self.extract_async(image_bytes, mime_type))

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=httpx.Timeout(self.timeout)) as http:
            return await http.post(self.api_url, headers=headers, json=payload)

    def _timed_out(self) -> ExtractionOutcome:
        logger.error("Fireworks request timed out after %.0fs", self.timeout)
        return ExtractionOutcome(
            model=self.model,
            error=f"Extraction timed out after {self.timeout:.0f}s",
            timed_out=True,
        )

    async def extract_async(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> ExtractionOutcome:
        logger.info("Extraction request: model=%s bytes=%d mime=%s", self.model, len(image_bytes), mime_type)
        payload = self.build_payload(image_bytes, mime_type)

        try:
            resp = await asyncio.wait_for(self._post(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self._timed_out()
        except httpx.HTTPError as exc:
            logger.error("Fireworks request failed: %s", exc)
            return ExtractionOutcome(model=self.model, error=f"Fireworks request failed: {exc}")

        if not resp.is_success:
            snippet = truncate(resp.text)
            logger.error("Fireworks API error: %s %s", resp.status_code, snippet)
            return ExtractionOutcome(
                model=self.model,
                error=f"Fireworks API error: {resp.status_code} - {snippet}",
            )

        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return ExtractionOutcome(
                model=self.model,
                error=f"Fireworks returned a non-JSON body: {truncate(resp.text)}",
            )

        usage = read_token_usage(body)
        tokens_used = usage.total_tokens if usage else None
        content = _message_content(body)
        if content is None:
            return ExtractionOutcome(
                model=self.model,
                error="No content in LLM response",
                tokens_used=tokens_used,
                token_usage=usage,
            )

        outcome = parse_extraction(content)
        logger.info(
            "Extraction parsed (%s): name=%r confidence=%s tokens=%s",
            outcome.kind.value,
            outcome.extraction.subscription_name,
            outcome.extraction.confidence_score,
            tokens_used,
        )
        return ExtractionOutcome(
            model=self.model,
            extraction=outcome.extraction,
            raw_response=content,
            tokens_used=tokens_used,
            token_usage=usage,
            parse_kind=outcome.kind,
        )
