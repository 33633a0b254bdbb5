"""Per-conversation event log.

Each conversation gets its own JSONL file under the log directory with
user messages, retrieval summaries, model requests/responses, function
calls and listener failures.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


class ConversationLogger:
    """Logs complete conversations for analysis."""

    def __init__(self, log_dir: Path | str | None = None) -> None:
        """Initialize the conversation logger.

        Args:
            log_dir: Directory to store logs. Defaults to ./logs in cwd.
        """
        if log_dir is None:
            log_dir = Path.cwd() / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log_file(self, conversation_id: str) -> Path:
        """Get log file path for a conversation."""
        date_str = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"{date_str}_{conversation_id}.jsonl"

    def _write(self, conversation_id: str, entry: dict[str, Any]) -> None:
        entry["timestamp"] = datetime.now(timezone.utc).isoformat()
        entry["conversation_id"] = conversation_id

        with open(self.log_file(conversation_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")

    def log_user_message(self, conversation_id: str, content: str) -> None:
        self._write(conversation_id, {
            "event": "user_message",
            "role": "user",
            "content": content,
        })

    def log_assistant_message(self, conversation_id: str, content: str) -> None:
        """Log the final assistant response."""
        self._write(conversation_id, {
            "event": "assistant_message",
            "role": "assistant",
            "content": content,
        })

    def log_retrieval(
        self,
        conversation_id: str,
        counts: dict[str, int],
        failed: list[str] | None = None,
    ) -> None:
        """Log how many fragments each content-type tag received."""
        entry: dict[str, Any] = {"event": "retrieval", "counts": counts}
        if failed:
            entry["failed"] = failed
        self._write(conversation_id, entry)

    def log_llm_request(
        self,
        conversation_id: str,
        model: str,
        messages_count: int,
        has_functions: bool,
        stream: bool = False,
    ) -> None:
        self._write(conversation_id, {
            "event": "llm_request",
            "model": model,
            "messages_count": messages_count,
            "has_functions": has_functions,
            "stream": stream,
        })

    def log_llm_response(
        self,
        conversation_id: str,
        has_content: bool,
        function_calls_count: int,
        finish_reason: str | None = None,
    ) -> None:
        self._write(conversation_id, {
            "event": "llm_response",
            "has_content": has_content,
            "function_calls_count": function_calls_count,
            "finish_reason": finish_reason,
        })

    def log_function_call(
        self,
        conversation_id: str,
        name: str,
        args: dict[str, Any],
        call_id: str | None = None,
    ) -> None:
        self._write(conversation_id, {
            "event": "function_call",
            "name": name,
            "args": args,
            "call_id": call_id,
        })

    def log_function_result(
        self,
        conversation_id: str,
        name: str,
        success: bool,
        output: str,
        error: str | None = None,
        call_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "event": "function_result",
            "name": name,
            "success": success,
            "output": output[:2000] if output else "",  # Truncate long outputs
            "call_id": call_id,
        }
        if error:
            entry["error"] = error
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms
        self._write(conversation_id, entry)

    def log_listener_error(self, conversation_id: str, listener: str, error: str) -> None:
        self._write(conversation_id, {
            "event": "listener_error",
            "listener": listener,
            "error": error,
        })

    def log_error(self, conversation_id: str, error: str, context: str | None = None) -> None:
        entry = {
            "event": "error",
            "error": error,
        }
        if context:
            entry["context"] = context
        self._write(conversation_id, entry)

    def log_agent_stop(self, conversation_id: str, finish_reason: str | None) -> None:
        self._write(conversation_id, {
            "event": "agent_stop",
            "finish_reason": finish_reason,
        })


# Global instance
_conversation_logger: ConversationLogger | None = None


def get_conversation_logger(log_dir: Path | str | None = None) -> ConversationLogger:
    """Get or create the global conversation logger."""
    global _conversation_logger
    if _conversation_logger is None:
        _conversation_logger = ConversationLogger(log_dir=log_dir)
    return _conversation_logger


def reset_conversation_logger() -> None:
    """Reset the global conversation logger (for testing)."""
    global _conversation_logger
    _conversation_logger = None
