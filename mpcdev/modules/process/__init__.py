"""
Process Module - Black Box Interface

Purpose: Execute external lifecycle commands
Interface: ProcessRunner.run() -> ProcessResult
Hidden: Subprocess creation, output decoding, kill-on-timeout

Non-zero exits are data, not errors. Callers classify failures.
"""

from .runner import ProcessResult, ProcessRunner

__all__ = ["ProcessRunner", "ProcessResult"]
