"""
Structured logging for the retrieval core.
Every component logs through the module-global ``logger`` so that retrieval,
matching and decision events share one format.
"""

import logging
from typing import Any, Dict, List, Optional


class StructuredLogger:
    """Structured logger for embedding, index, matching and decision operations."""

    def __init__(self, name: str = "tiered_retrieval"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("warning", "skipped", "fallback", "clamped"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector index operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_embedding_fallback(self, provider: str, reason: str, next_provider: Optional[str] = None):
        """Log an embedding strategy failure and which strategy is tried next."""
        log_details = {
            "provider": provider,
            "reason": reason[:100],
            "next_provider": next_provider or "none"
        }
        self.log_operation("embedding.fallback", "fallback", log_details)

    def log_match_result(self, query: str, source_id: Optional[str], score: float, method: str, corpus_size: int):
        """Log the best match found for a query."""
        log_details = {
            "query": sanitize_payload(query),
            "source_id": source_id or "none",
            "score": round(score, 4),
            "method": method,
            "corpus_size": corpus_size
        }
        self.log_operation("qa.match", "success", log_details)

    def log_safety_override(self, source_id: str, original_score: float, clamped_score: float):
        """Log a crisis-query clamp applied to a candidate."""
        log_details = {
            "source_id": source_id,
            "original_score": round(original_score, 4),
            "clamped_score": round(clamped_score, 4)
        }
        self.log_operation("safety.override", "clamped", log_details)

    def log_decision(self, mode: str, percentage: Optional[float], duplicate: bool, context_size: int, reason: str = ""):
        """Log the response-mode decision for a request."""
        log_details = {
            "mode": mode,
            "percentage": round(percentage, 1) if percentage is not None else None,
            "duplicate": duplicate,
            "context_size": context_size
        }
        if reason:
            log_details["reason"] = reason
        self.log_operation("decision", mode, log_details)

    def log_corpus_import(self, source: str, imported: int, skipped: int, warnings: List[str] = None):
        """Log a corpus import summary."""
        log_details = {
            "source": source,
            "imported": imported,
            "skipped": skipped
        }
        if warnings:
            log_details["warnings"] = [w[:80] for w in warnings[:5]]

        status = "success" if skipped == 0 else "warning"
        self.log_operation("corpus.import", status, log_details)

    def log_corpus_warning(self, entry_id: str, reason: str):
        """Log a malformed corpus entry that was skipped."""
        self.log_operation("corpus.entry", "skipped", {"entry_id": entry_id, "reason": reason[:100]})

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


def sanitize_payload(payload: Any, max_length: int = 60) -> Any:
    """Truncate user text before it reaches the log stream."""
    if isinstance(payload, dict):
        return {k: sanitize_payload(v, max_length) for k, v in payload.items()}
    elif isinstance(payload, str):
        return payload[:max_length] + "..." if len(payload) > max_length else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, max_length) for item in payload]
    else:
        return payload


# Global logger instance
logger = StructuredLogger()
