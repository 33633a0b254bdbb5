"""Exception taxonomy for the prompt pipeline.

Every error carries the text or identifier that triggered it so that a
failed request can be debugged from the exception alone.
"""

from collections.abc import Iterable


class RagentError(Exception):
    """Base class for all ragent errors."""

    pass


class TemplateError(RagentError):
    """Raised when a template references a variable that was not supplied."""

    def __init__(self, message: str, template: str, names: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.template = template
        self.names = sorted(names)


class UnusedVariableError(TemplateError):
    """Raised by strict templates when supplied variables are never referenced."""

    pass


class RetrievalError(RagentError):
    """Raised when a retriever's backing store is unreachable or the query fails."""

    def __init__(self, retriever: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Retriever '{retriever}' failed{detail}")
        self.retriever = retriever
        self.cause = cause


class FormatMismatchError(RagentError):
    """Raised when completion text does not parse into the requested shape."""

    def __init__(self, message: str, text: str) -> None:
        super().__init__(f"{message}: {text[:200]!r}")
        self.text = text


class FunctionLoopExceeded(RagentError):
    """Raised when the model keeps requesting function calls past the bound."""

    def __init__(self, max_rounds: int, function_names: Iterable[str] = ()) -> None:
        self.max_rounds = max_rounds
        self.function_names = list(function_names)
        names = ", ".join(self.function_names) or "?"
        super().__init__(
            f"Function calling exceeded {max_rounds} rounds (last requested: {names})"
        )


class ListenerError(RagentError):
    """Wraps a failure inside an agent listener. Reported, never raised to callers."""

    def __init__(self, listener: str, cause: BaseException) -> None:
        super().__init__(f"Listener '{listener}' failed: {cause}")
        self.listener = listener
        self.cause = cause


class UnknownFunctionError(RagentError):
    """Raised when a request enables a function name that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown function: {name}")
        self.name = name
