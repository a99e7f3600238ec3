"""Exception types raised across Sandpit."""


class GenerationError(Exception):
    """A run finished without a usable result."""


class ModelError(Exception):
    """The model call kept failing after all retries."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
