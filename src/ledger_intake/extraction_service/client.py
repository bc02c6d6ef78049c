"""Client for the external extraction service (Ollama-compatible chat API).

Two request modalities:
- text: the user message carries a PDF's text layer (text model)
- image: the user message carries a base64 image (vision model)

Failure policy:
- Transport errors, timeouts and HTTP error statuses (401/403 included) raise
  ExtractionServiceError; the orchestrator isolates them per file.
- A reply that arrives but is not what we asked for is returned as-is and
  parsed by the caller.

Privacy constraints:
- Never log document text or image bytes at INFO level
"""

from __future__ import annotations

import base64
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from ..errors import ExtractionServiceError
from .prompts import ReceiptExtractionPrompt

if TYPE_CHECKING:
    from ..config import ExtractionServiceConfig

logger = logging.getLogger(__name__)


@dataclass
class ServiceReply:
    """Raw reply text from the service plus the model that produced it."""

    content: str
    model: str
    modality: str


class ConcurrencyLimiter:
    """Semaphore-based concurrency limiter for extraction requests.

    Bounds load on the extraction service across request threads.
    """

    def __init__(self, max_concurrent: int = 2) -> None:
        self._semaphore = threading.Semaphore(max_concurrent)
        self._active_count = 0
        self._lock = threading.Lock()

    def acquire(self, timeout: float | None = None) -> bool:
        """Acquire a slot for a request.

        Args:
            timeout: Maximum time to wait (None = blocking)

        Returns:
            True if acquired, False if timeout
        """
        acquired = self._semaphore.acquire(blocking=True, timeout=timeout)
        if acquired:
            with self._lock:
                self._active_count += 1
        return acquired

    def release(self) -> None:
        """Release a slot after request completes."""
        with self._lock:
            self._active_count -= 1
        self._semaphore.release()

    @property
    def active_requests(self) -> int:
        """Current number of active requests."""
        with self._lock:
            return self._active_count


class ExtractionServiceClient:
    """Sends extraction requests and returns the raw reply text."""

    def __init__(
        self,
        config: ExtractionServiceConfig,
        prompt: ReceiptExtractionPrompt | None = None,
    ) -> None:
        self.config = config
        self.prompt = prompt or ReceiptExtractionPrompt()

        # Support formats: "Bearer token" or "Custom-Header: value"
        headers = {}
        if config.auth_header:
            if ":" in config.auth_header:
                key, value = config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = config.auth_header

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )
        self._limiter = ConcurrencyLimiter(max_concurrent=config.max_concurrent)
        logger.info(
            "Extraction service at %s (%s, text=%s, vision=%s)",
            config.base_url,
            "remote" if config.is_remote() else "local",
            config.text_model,
            config.vision_model,
        )

    @property
    def active_requests(self) -> int:
        return self._limiter.active_requests

    def close(self) -> None:
        self._client.close()

    def extract_text(self, content: str) -> ServiceReply:
        """Text-only request for a document's extracted text.

        Raises:
            ExtractionServiceError: The service could not be reached or refused
        """
        message = {"role": "user", "content": self.prompt.format_text_message(content)}
        reply = self._chat(self.config.text_model, message)
        return ServiceReply(content=reply, model=self.config.text_model, modality="text")

    def extract_image(self, data: bytes, mime_type: str) -> ServiceReply:
        """Vision request for a receipt/invoice image.

        Raises:
            ExtractionServiceError: The service could not be reached or refused
        """
        logger.debug("Sending %s image (%d bytes) for extraction", mime_type, len(data))
        message = {
            "role": "user",
            "content": self.prompt.image_instruction,
            "images": [base64.b64encode(data).decode("ascii")],
        }
        reply = self._chat(self.config.vision_model, message)
        return ServiceReply(content=reply, model=self.config.vision_model, modality="image")

    def _chat(self, model: str, user_message: dict) -> str:
        """Call the chat endpoint with concurrency limiting.

        Returns:
            The reply text (possibly empty or not JSON at all).
        """
        if not self._limiter.acquire(timeout=self.config.timeout_seconds):
            logger.warning(
                "Extraction request timed out waiting for concurrency slot (max=%d, active=%d)",
                self.config.max_concurrent,
                self._limiter.active_requests,
            )
            raise ExtractionServiceError("Extraction service busy: no request slot available")

        try:
            url = f"{self.config.base_url.rstrip('/')}/api/chat"
            payload = {
                "model": model,
                "messages": [
                    {"role": "system", "content": self.prompt.system_prompt},
                    user_message,
                ],
                "stream": False,
                "format": "json",
                "options": {"temperature": 0},
            }

            logger.debug("Calling extraction model %s at %s", model, self.config.base_url)

            response = self._client.post(url, json=payload)
            response.raise_for_status()

            try:
                data = response.json()
            except ValueError:
                logger.warning("Extraction service returned a non-JSON envelope")
                return response.text or ""

            message = data.get("message") if isinstance(data, dict) else None
            content = message.get("content", "") if isinstance(message, dict) else ""
            logger.debug("Extraction model %s returned %d chars", model, len(content or ""))
            return content or ""

        except httpx.TimeoutException as e:
            logger.warning(
                "Extraction request timed out after %ds", self.config.timeout_seconds
            )
            raise ExtractionServiceError(f"Extraction service timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                "Extraction API error %s for model '%s' at %s",
                status,
                model,
                self.config.base_url,
            )
            raise ExtractionServiceError(
                f"Extraction service returned HTTP {status}", status_code=status
            ) from e
        except httpx.RequestError as e:
            logger.error("Extraction request failed: %s (URL: %s)", e, self.config.base_url)
            raise ExtractionServiceError(f"Extraction service unreachable: {e}") from e
        finally:
            # Always release the concurrency slot
            self._limiter.release()
