import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

# Import from centralized config
from garment_compose.config import (
    DEFAULT_CONFIDENCE,
    GEMINI_API_BASE,
    GEMINI_KEY,
    GEMINI_MODEL,
    logger,
)
from garment_compose.core.errors import (
    AuthError,
    BadRequestError,
    ConfigurationError,
    ExternalServiceError,
    RateLimitError,
)
from garment_compose.models import EncodedImage

MODEL_TIMEOUT_SECONDS = 120.0

GENERATION_CONFIG: Dict[str, Any] = {
    "temperature": 0.1,
    "topK": 32,
    "topP": 0.95,
    "maxOutputTokens": 1024,
    "responseMimeType": "application/json",
    "responseSchema": {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            "appliedInstructions": {"type": "array", "items": {"type": "string"}},
        },
    },
}


def _inline_mime(image: EncodedImage) -> str:
    mime_type = (image.mime_type or "").lower()
    return mime_type if mime_type.startswith("image/") else "image/jpeg"

class GeminiImageEditor:
    """
    Thin client for the Gemini image editing model.

    One call per edit; no retries at this layer. Transport status codes are
    mapped onto the model error taxonomy.
    """

    def __init__(
        self,
        api_key: Optional[str] = GEMINI_KEY,
        model: str = GEMINI_MODEL,
        api_base: str = GEMINI_API_BASE,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = MODEL_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout

        logger.info(f"Gemini editor initialized with API key: {bool(api_key)}")

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def ensure_configured(self) -> None:
        if not self.api_key:
            logger.error("Gemini API key not configured")
            raise ConfigurationError("Gemini API key not configured")

    def build_payload(
        self,
        instructions: str,
        subject: EncodedImage,
        garment: EncodedImage,
    ) -> Dict[str, Any]:
        # Order: text prompt first, then subject image, then garment image
        content_parts = [
            {"text": instructions},
            {
                "inline_data": {
                    "mime_type": _inline_mime(subject),
                    "data": subject.data,
                }
            },
            {
                "inline_data": {
                    "mime_type": _inline_mime(garment),
                    "data": garment.data,
                }
            },
        ]
        return {
            "contents": [{"parts": content_parts}],
            "generationConfig": GENERATION_CONFIG,
        }

    async def generate(
        self,
        instructions: str,
        subject: EncodedImage,
        garment: EncodedImage,
    ) -> Dict[str, Any]:
        """
        Submit one edit request and return the decoded JSON envelope.

        Raises:
            ConfigurationError: If no API key is configured (before any I/O)
            RateLimitError: HTTP 429
            AuthError: HTTP 403
            BadRequestError: HTTP 400
            ExternalServiceError: Any other non-success status or network error
        """
        self.ensure_configured()

        payload = self.build_payload(instructions, subject, garment)
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.endpoint, json=payload, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(
                        self.endpoint, json=payload, headers=headers
                    )
        except httpx.RequestError as exc:
            logger.error(f"Network error calling Gemini API: {exc}")
            raise ExternalServiceError(
                None, str(exc), message=f"Network error calling Gemini API: {exc}"
            ) from exc

        if not response.is_success:
            _raise_for_model_status(response)

        try:
            api_result = response.json()
        except json.JSONDecodeError as exc:
            raise ExternalServiceError(
                response.status_code,
                response.text,
                message="Gemini API returned a non-JSON response",
            ) from exc

        logger.info("Gemini API response received")
        return api_result


def _raise_for_model_status(response: httpx.Response) -> None:
    status = response.status_code
    error_text = response.text
    logger.error(f"Gemini API error: {status} - {error_text[:500]}")

    if status == 429:
        raise RateLimitError("Rate limit exceeded. Please try again later.")
    if status == 403:
        raise AuthError("Invalid API key or insufficient permissions.")
    if status == 400:
        raise BadRequestError("Invalid request. Please check image formats and sizes.")
    raise ExternalServiceError(status, error_text)


def _candidate_parts(api_result: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = api_result.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return [part for part in content.get("parts") or [] if isinstance(part, dict)]


def extract_edited_image(api_result: Dict[str, Any]) -> Optional[str]:
    """Return the first inline image payload of the first candidate, if any."""
    for part in _candidate_parts(api_result):
        # Check both snake_case and camelCase formats
        for key in ("inline_data", "inlineData"):
            inline = part.get(key)
            if isinstance(inline, dict) and inline.get("data"):
                return inline["data"]

    logger.warning("No edited image returned from Gemini API")
    return None


def _extract_json(raw_text: str) -> Optional[Dict[str, Any]]:
    """Attempt to parse a JSON object from the model's text output."""
    cleaned = raw_text.strip()

    # Remove markdown code block delimiters
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline > 0:
            cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.debug(f"Model text part is not JSON: {raw_text[:200]}")
        return None

    return data if isinstance(data, dict) else None


def _coerce_confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0 <= value <= 1:
        return float(value)
    return None


def extract_metadata(
    api_result: Dict[str, Any],
    default_confidence: float = DEFAULT_CONFIDENCE,
) -> Tuple[float, Optional[List[str]]]:
    """
    Read model-reported confidence and applied instructions.

    Returns:
        (confidence, applied_instructions). Confidence falls back to
        ``default_confidence`` when the model omits it or reports a value
        outside [0, 1]; applied instructions are None when absent.
    """
    confidence: Optional[float] = None
    applied: Optional[List[str]] = None

    for part in _candidate_parts(api_result):
        if confidence is None:
            confidence = _coerce_confidence(part.get("confidence"))

        text = part.get("text")
        if not text:
            continue
        structured = _extract_json(text)
        if not structured:
            continue
        if confidence is None:
            confidence = _coerce_confidence(structured.get("confidence"))
        if applied is None and isinstance(structured.get("appliedInstructions"), list):
            applied = [str(item) for item in structured["appliedInstructions"]]

    if confidence is None:
        confidence = default_confidence
    return confidence, applied


__all__ = [
    "GENERATION_CONFIG",
    "GeminiImageEditor",
    "extract_edited_image",
    "extract_metadata",
]
