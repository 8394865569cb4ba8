"""Exceptions raised by the file system core."""


class KernelPanic(RuntimeError):
    """An unrecoverable inconsistency was detected; the operation cannot continue."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"panic: {self.message}"