from __future__ import annotations


class RejectedBeforeExecution(ValueError):
    """A request refused before any working directory or process exists.

    Example:
        ```python
        raise RejectedBeforeExecution("Code cannot be empty")
        ```
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnsupportedLanguageError(RejectedBeforeExecution):
    """The requested language has no driver.

    Example:
        ```python
        raise UnsupportedLanguageError("cobol", ["c", "python"])
        ```
    """

    def __init__(self, language: str, supported: list[str]) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language
        self.supported = supported


class InvalidCodeError(RejectedBeforeExecution):
    """The submitted code is missing, blank or larger than the ceiling."""


class ContentRejectedError(RejectedBeforeExecution):
    """The content filter refused the submitted code."""
