"""Structured JSON logger for explainer run observability.

This module provides structured logging functionality that writes JSON-formatted
log entries to explainer.log in an output directory. Each log entry is a single
JSON object on one line, making it easy to parse and analyze.

Log Event Types:
- run_start: A multi-batch explainer run begins
- batch_start: A batch request is about to be sent (once per attempt)
- batch_complete: A batch was narrated and merged
- batch_failure: A batch attempt failed
- run_complete: All batches processed
- run_error: The run aborted
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


LOG_FILENAME = "explainer.log"


class StructuredJSONLogger:
    """Structured JSON logger that writes to explainer.log.

    Each log entry follows the format:

    {
        "event": "run_start|batch_start|batch_complete|...",
        "timestamp": "ISO8601",
        ...additional fields based on event type...
    }

    The logger maintains both a file handle for JSON logs and a console handler
    for human-readable logs.
    """

    def __init__(self, output_directory: Optional[str] = None):
        """Initialize the structured JSON logger.

        Args:
            output_directory: Directory where explainer.log will be written.
                            If None, only console logging is enabled.
        """
        self.output_directory = output_directory
        self.log_file_path = None
        self.json_file_handle = None

        if output_directory:
            self._setup_log_file(output_directory)

        self.logger = logging.getLogger(__name__)
        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)
            self.logger.setLevel(logging.INFO)

    def _setup_log_file(self, output_directory: str) -> None:
        output_path = Path(output_directory)
        output_path.mkdir(parents=True, exist_ok=True)

        self.log_file_path = output_path / LOG_FILENAME
        self.json_file_handle = open(self.log_file_path, 'a', encoding='utf-8')

    def _write_json_log(self, event: str, **fields: Any) -> None:
        """Write a JSON log entry to explainer.log.

        Args:
            event: Event type
            **fields: Event-specific fields
        """
        if not self.json_file_handle:
            return
        log_entry: Dict[str, Any] = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        log_entry.update(fields)
        self.json_file_handle.write(json.dumps(log_entry, ensure_ascii=False) + '\n')
        self.json_file_handle.flush()

    def log_run_start(self, page_count: int, batch_count: int, config: Dict[str, Any]) -> None:
        """Log explainer run start.

        Args:
            page_count: Number of pages in the run
            batch_count: Number of batches planned
            config: Run configuration
        """
        self._write_json_log(
            "run_start",
            page_count=page_count,
            batch_count=batch_count,
            config=config
        )
        self.logger.info(f"Starting explainer run: {page_count} pages in {batch_count} batches")

    def log_batch_start(
        self,
        batch_index: int,
        start_index: int,
        length: int,
        retry_attempt: int = 0
    ) -> None:
        """Log a batch attempt.

        Args:
            batch_index: 0-based batch position
            start_index: Global index of the batch's first page
            length: Number of pages in the batch
            retry_attempt: Retry attempt number (0 for first attempt)
        """
        self._write_json_log(
            "batch_start",
            batch_index=batch_index,
            start_index=start_index,
            length=length,
            retry_attempt=retry_attempt
        )
        attempt_str = f" (attempt {retry_attempt + 1})" if retry_attempt > 0 else ""
        self.logger.info(
            f"Starting batch {batch_index + 1}{attempt_str}: "
            f"panels {start_index + 1}-{start_index + length}"
        )

    def log_batch_complete(
        self,
        batch_index: int,
        duration_ms: float,
        scene_count: int,
        context_summary: str
    ) -> None:
        """Log a merged batch.

        Args:
            batch_index: 0-based batch position
            duration_ms: Time spent on the batch, retries included
            scene_count: Number of scenes the batch contributed
            context_summary: Story context carried to the next batch
        """
        self._write_json_log(
            "batch_complete",
            batch_index=batch_index,
            duration_ms=round(duration_ms, 2),
            scene_count=scene_count,
            context_summary=context_summary
        )
        self.logger.info(
            f"Completed batch {batch_index + 1} in {duration_ms:.2f}ms: {scene_count} scenes"
        )

    def log_batch_failure(
        self,
        batch_index: int,
        error_message: str,
        error_code: str,
        status_code: Optional[int] = None,
        duration_ms: Optional[float] = None
    ) -> None:
        """Log a batch that exhausted its retries or failed permanently.

        Args:
            batch_index: 0-based batch position
            error_message: Human-readable error message
            error_code: Machine-readable error code
            status_code: Upstream status, if any
            duration_ms: Optional time spent on the batch
        """
        fields: Dict[str, Any] = {
            "batch_index": batch_index,
            "error_message": error_message,
            "error_code": error_code,
            "status_code": status_code,
        }
        if duration_ms is not None:
            fields["duration_ms"] = round(duration_ms, 2)

        self._write_json_log("batch_failure", **fields)
        self.logger.error(f"Failed batch {batch_index + 1} [{error_code}]: {error_message}")

    def log_run_complete(self, duration_seconds: float, scene_count: int, batch_count: int) -> None:
        self._write_json_log(
            "run_complete",
            duration_seconds=round(duration_seconds, 2),
            scene_count=scene_count,
            batch_count=batch_count
        )
        self.logger.info(
            f"Explainer run completed in {duration_seconds:.2f}s: "
            f"{scene_count} scenes from {batch_count} batches"
        )

    def log_run_error(self, error_type: str, error_message: str, batch_index: Optional[int] = None) -> None:
        """Log run-level error.

        Args:
            error_type: Type of error (exception class name)
            error_message: Error message
            batch_index: Batch being processed when the run aborted
        """
        fields: Dict[str, Any] = {
            "error_type": error_type,
            "error_message": error_message,
        }
        if batch_index is not None:
            fields["batch_index"] = batch_index

        self._write_json_log("run_error", **fields)
        self.logger.error(f"Explainer run aborted: {error_message}")

    def close(self) -> None:
        """Close the log file handle."""
        if self.json_file_handle:
            self.json_file_handle.close()
            self.json_file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures log file is closed."""
        self.close()
        return False
