"""
Audit logging for indexing runs and chat traffic.

One JSON event per line, appended to the audit file. Chat messages are
truncated and model outputs are never logged.
"""

import logging
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


class AuditLogger:
    """
    Structured audit logger.

    Features:
    - JSON event logging
    - Indexing batch and vector upsert tracking
    - Chat routing decisions (product, collection, retrieval)
    - Network egress tracking (URL, status, byte count, time)
    """

    def __init__(self, log_file: str = "./audit.log", level: str = "INFO",
                 enabled: bool = True):
        """
        Initialize audit logger.

        Args:
            log_file: Path to audit log
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            enabled: If False, events are discarded
        """
        self.log_file = Path(log_file)
        self.enabled = enabled

        self.logger = logging.getLogger(f"storefront_rag.audit.{self.log_file}")
        self.logger.setLevel(getattr(logging, level))
        self.logger.propagate = False

        # Remove existing handlers to avoid duplicates
        for handler in self.logger.handlers:
            handler.close()
        self.logger.handlers = []

        if not enabled:
            self.logger.addHandler(logging.NullHandler())
            return

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        fh.setLevel(getattr(logging, level))
        # Each line is a JSON event
        fh.setFormatter(logging.Formatter('%(message)s'))
        self.logger.addHandler(fh)

    def log_event(self, event_dict: Dict[str, Any]):
        """
        Log a structured event as JSON.

        Args:
            event_dict: Event data to log
        """
        if not self.enabled:
            return
        event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
        self.logger.info(json.dumps(event_dict, default=str))

    def log_document_ingestion(self, source_id: str, source: str,
                               num_chunks: int, **kwargs):
        """
        Log that a document was chunked.

        Args:
            source_id: Document id
            source: Source kind (shopify-product, public, pdf, ...)
            num_chunks: Number of chunks created
            **kwargs: Additional metadata
        """
        self.log_event({
            "event": "document_ingestion",
            "source_id": source_id,
            "source": source,
            "num_chunks": num_chunks,
            **kwargs
        })

    def log_vector_upsert(self, batch: int, total_batches: int, num_vectors: int,
                          execution_time_ms: float, **kwargs):
        """Log one batch written to the vector store."""
        self.log_event({
            "event": "vector_upsert",
            "batch": batch,
            "total_batches": total_batches,
            "num_vectors": num_vectors,
            "execution_time_ms": execution_time_ms,
            **kwargs
        })

    def log_chat(self, session_id: str, message: str, route: str,
                 execution_time_ms: float, **kwargs):
        """
        Log a chat turn.

        Args:
            session_id: Conversation id
            message: User message (truncated)
            route: How the reply was produced (product, collection, retrieval)
            execution_time_ms: Total handling time
            **kwargs: Additional metadata
        """
        self.log_event({
            "event": "chat",
            "session_id": session_id,
            "message": message[:200],
            "route": route,
            "execution_time_ms": execution_time_ms,
            **kwargs
        })

    def log_network_egress(self, method: str, url: str, status_code: int,
                           response_size: int, execution_time_ms: float, **kwargs):
        """
        Log outbound network request. Response bodies are never logged.

        Args:
            method: HTTP method
            url: Request URL
            status_code: Response status code
            response_size: Response body size in bytes
            execution_time_ms: Request duration
            **kwargs: Additional metadata
        """
        self.log_event({
            "event": "network_egress",
            "method": method,
            "url": url,
            "status_code": status_code,
            "response_size_bytes": response_size,
            "execution_time_ms": execution_time_ms,
            **kwargs
        })

    def log_model_inference(self, model_name: str, input_tokens: int,
                            output_tokens: int, inference_time_ms: float, **kwargs):
        """Log model inference event."""
        self.log_event({
            "event": "model_inference",
            "model": model_name,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "inference_time_ms": inference_time_ms,
            **kwargs
        })

    def log_error(self, error_type: str, message: str, context: Optional[Dict] = None):
        """
        Log system error.

        Args:
            error_type: Type of error
            message: Error message
            context: Optional context dictionary
        """
        self.log_event({
            "event": "error",
            "error_type": error_type,
            "message": message,
            **(context or {})
        })


def get_audit_logger(config: Optional[Dict[str, Any]] = None) -> AuditLogger:
    """
    Get configured audit logger instance.

    Args:
        config: Audit config dict with 'file', 'level' and 'enabled' keys

    Returns:
        AuditLogger instance
    """
    if config is None:
        config = {'file': './audit.log', 'level': 'INFO'}

    return AuditLogger(
        log_file=config.get('file', './audit.log'),
        level=config.get('level', 'INFO'),
        enabled=config.get('enabled', True),
    )
