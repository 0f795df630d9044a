"""AI Agents package."""

from finance_tracker.agents.ai_agents import (
    AdvisoryAgent,
    AdvisoryError,
    ReceiptExtractionAgent,
    ReceiptExtractionError,
    build_advice_payload,
    decode_payload,
    mime_type_from_data_url,
    parse_receipt_data,
)

__all__ = [
    "AdvisoryAgent",
    "AdvisoryError",
    "ReceiptExtractionAgent",
    "ReceiptExtractionError",
    "build_advice_payload",
    "decode_payload",
    "mime_type_from_data_url",
    "parse_receipt_data",
]
