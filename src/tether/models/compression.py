"""Domain models for the compression subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from tether.models.message import Message


class CompressionRecord(BaseModel):
    """Audit entry for one successful compression.

    Appended to ``SessionState.compression_history`` and never removed.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    tokens_before: int
    tokens_after: int
    ratio: float
    """tokens_after / tokens_before. Values < 1.0 mean the history shrank."""
    summary_preview: str


@dataclass(frozen=True)
class CompressResult:
    """Output of ``ContextCompressor.compress()``.

    The compressor only produces the summary and reports which messages it
    supersedes; splicing the new history is the orchestrator's job.
    """

    summary_message: Message
    record: CompressionRecord
    dropped_messages: tuple[Message, ...]
