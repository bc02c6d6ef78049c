"""Prompt templates for the document extraction service.

The prompt fixes the output contract: one JSON object with exactly the keys
in RESPONSE_KEYS and nothing else. Prompts are versioned so stored raw
responses can be traced back to the wording that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass

# v1.0: Single-object receipt/invoice schema, text and vision variants
PROMPT_VERSION = "v1.0"

RESPONSE_KEYS = (
    "vendorName",
    "amount",
    "transactionDate",
    "description",
    "invoiceNumber",
    "currency",
    "lineItems",
    "confidence",
)


@dataclass
class ReceiptExtractionPrompt:
    """Prompt template for receipt/invoice field extraction.

    Attributes:
        version: Prompt version recorded with raw responses.
        system_prompt: System message setting the output contract.
        text_template: User message for PDF text layers.
        image_instruction: User message sent alongside an image.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You are an expert at extracting structured data from invoices and receipts.

Respond with a single JSON object and nothing else:
{
    "vendorName": "Company or vendor name",
    "amount": "Total amount as a number (no currency symbols)",
    "transactionDate": "Date in YYYY-MM-DD format",
    "description": "Brief description of goods/services",
    "invoiceNumber": "Invoice or receipt number if visible",
    "currency": "Currency code (USD, EUR, etc.) or USD if not specified",
    "lineItems": "List of line items as a text string, e.g. 'Item 1 ($100), Item 2 ($50)'",
    "confidence": "Your confidence level: high, medium, or low"
}

Rules:
1. If a field is not found or unclear, use null
2. For amount, extract only the final total (not subtotals or line items)
3. For transactionDate, convert any date format to YYYY-MM-DD
4. For confidence, assess based on document quality and data visibility
5. Return ONLY valid JSON, no markdown and no additional text"""

    text_template: str = """Extract the invoice data from this document text:

═══════════════════════════════════════════════════════════════
{content}
═══════════════════════════════════════════════════════════════

Return the JSON object now."""

    image_instruction: str = (
        "Analyze this invoice/receipt image and return the JSON object described "
        "in your instructions."
    )

    def format_text_message(self, content: str) -> str:
        """Format the user message for an extracted PDF text layer.

        Args:
            content: Text extracted from the PDF.

        Returns:
            Formatted user message.
        """
        return self.text_template.format(content=content.strip() or "(empty document)")
