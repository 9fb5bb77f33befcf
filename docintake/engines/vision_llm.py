"""
Hosted vision-language model engine.

Sends the whole file base64-encoded to an OpenAI-compatible chat completions
gateway and forces a single function call, `extract_invoice_data`, whose
arguments are the raw payload. One request per document; no retries.
"""

import base64
import json
import re
import time
from typing import Optional

import httpx
import structlog

from docintake.config import settings
from docintake.engines.base import ExtractionEngine
from docintake.errors import ParseError, QuotaExhaustedError, RateLimitedError, UpstreamError
from docintake.observability.metrics import extraction_latency_seconds

logger = structlog.get_logger(__name__)

TOOL_NAME = "extract_invoice_data"

EXTRACTION_PROMPT = """You are an expert energy invoice data extraction system. Analyze this energy invoice document and extract the following information accurately.

IMPORTANT INSTRUCTIONS:
1. Look carefully at all pages of the document
2. For dates, convert to YYYY-MM-DD format
3. For kWh, extract the total consumption figure (not daily or partial readings)
4. For reading type, look for keywords like:
   - "Actual" or "A" = Actual reading
   - "Estimated" or "E" = Estimated reading
   - "Customer" or "C" = Customer Read
   - If unclear, use "Unknown"
5. For supplier name, look at the letterhead, logo, or company name
6. Provide confidence scores (0-100) based on how clearly visible/readable each value is:
   - 90-100: Value is clearly visible and unambiguous
   - 75-89: Value is visible but formatting is non-standard
   - 60-74: Value is partially visible or inferred
   - Below 60: Value is guessed or not found

Extract the data now."""

EXTRACTION_TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Extract structured data from an energy invoice",
        "parameters": {
            "type": "object",
            "properties": {
                "invoice_date": {"type": "string", "description": "Invoice date in YYYY-MM-DD format"},
                "billing_period_start": {"type": "string", "description": "Billing period start date in YYYY-MM-DD format"},
                "billing_period_end": {"type": "string", "description": "Billing period end date in YYYY-MM-DD format"},
                "reading_type": {
                    "type": "string",
                    "enum": ["Actual", "Estimated", "Customer Read", "Unknown"],
                    "description": "Type of meter reading",
                },
                "kwh_used": {"type": "number", "description": "Total kWh consumed during billing period"},
                "supplier_name": {"type": "string", "description": "Name of the energy supplier"},
                "confidence_invoice_date": {"type": "number", "description": "Confidence score 0-100 for invoice date extraction"},
                "confidence_reading_type": {"type": "number", "description": "Confidence score 0-100 for reading type extraction"},
                "confidence_kwh": {"type": "number", "description": "Confidence score 0-100 for kWh extraction"},
            },
            "required": [
                "invoice_date",
                "billing_period_start",
                "billing_period_end",
                "reading_type",
                "kwh_used",
                "supplier_name",
                "confidence_invoice_date",
                "confidence_reading_type",
                "confidence_kwh",
            ],
            "additionalProperties": False,
        },
    },
}

CODE_FENCE = re.compile(r"```(?:json)?\n?")


def build_request_body(model: str, file_bytes: bytes, mime_type: str) -> dict:
    data_url = f"data:{mime_type};base64,{base64.b64encode(file_bytes).decode('ascii')}"
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ],
        "tools": [EXTRACTION_TOOL],
        "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
    }


def parse_model_response(data: dict) -> dict:
    """
    Pull the extraction payload out of a chat completion.
    Prefers the forced tool call; falls back to JSON in the message content.
    """
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as e:
        raise ParseError("Completion has no message") from e

    if not isinstance(message, dict):
        raise ParseError("Completion message is not an object")

    tool_calls = message.get("tool_calls") or []
    arguments = None
    if tool_calls:
        if not isinstance(tool_calls, list) or not isinstance(tool_calls[0], dict):
            raise ParseError("Malformed tool call in completion")
        function = tool_calls[0].get("function") or {}
        if not isinstance(function, dict):
            raise ParseError("Malformed tool call in completion")
        arguments = function.get("arguments")

    if arguments:
        raw_text = arguments
    else:
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise ParseError(f"Completion content is {type(content).__name__}, expected text")
        raw_text = CODE_FENCE.sub("", content).strip()

    if isinstance(raw_text, dict):
        payload = raw_text
    else:
        try:
            payload = json.loads(raw_text)
        except (json.JSONDecodeError, TypeError) as e:
            raise ParseError("Failed to parse extraction results") from e

    if not isinstance(payload, dict):
        raise ParseError(f"Extraction payload is {type(payload).__name__}, expected object")
    return payload


class VisionLLMEngine(ExtractionEngine):
    """Extraction through a hosted vision-language model."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or settings.EXTRACTION_API_URL
        self.api_key = api_key or settings.EXTRACTION_API_KEY
        self.model = model or settings.EXTRACTION_MODEL
        self.timeout_seconds = timeout_seconds or settings.EXTRACTION_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def engine_name(self) -> str:
        return "vision_llm"

    @property
    def engine_version(self) -> str:
        return self.model

    async def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> dict:
        if not self.api_key:
            raise UpstreamError("EXTRACTION_API_KEY is not configured")

        body = build_request_body(self.model, file_bytes, mime_type)
        headers = {"Authorization": f"Bearer {self.api_key}"}

        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.api_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Extraction request failed: {e}") from e
        finally:
            extraction_latency_seconds.labels(engine_name=self.engine_name).observe(
                time.perf_counter() - started
            )

        if response.status_code == 429:
            raise RateLimitedError("Rate limit exceeded. Please try again later.", 429)
        if response.status_code == 402:
            raise QuotaExhaustedError("AI credits exhausted. Please add credits to continue.", 402)
        if not response.is_success:
            logger.error(
                "extraction_upstream_error",
                status=response.status_code,
                body=response.text[:500],
                file_name=file_name,
            )
            raise UpstreamError(f"AI extraction failed: {response.status_code}", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError("Extraction response is not JSON") from e

        payload = parse_model_response(data)
        logger.info("extraction_response_parsed", file_name=file_name, fields=sorted(payload))
        return payload

    async def health_check(self) -> bool:
        return bool(self.api_key and self.api_url)
