"""
Extraction service integration.

Sends PDF text layers and receipt images to an Ollama-compatible chat API
and parses the single JSON object it returns.
"""

from .client import ConcurrencyLimiter, ExtractionServiceClient, ServiceReply
from .prompts import PROMPT_VERSION, RESPONSE_KEYS, ReceiptExtractionPrompt
from .response import parse_extraction_response, strip_code_fences

__all__ = [
    "PROMPT_VERSION",
    "RESPONSE_KEYS",
    "ConcurrencyLimiter",
    "ExtractionServiceClient",
    "ReceiptExtractionPrompt",
    "ServiceReply",
    "parse_extraction_response",
    "strip_code_fences",
]
