"""
Provider-side exceptions.

Providers translate transport and HTTP failures into ProviderError so the
retry policy has one type to classify. retryable=None means "let the
classifier decide from status_code / code / message".
"""


class ProviderError(Exception):
    """A reasoning provider call failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.retryable = retryable

    def __repr__(self) -> str:
        return (
            f"ProviderError({str(self)!r}, status_code={self.status_code}, "
            f"code={self.code!r})"
        )
