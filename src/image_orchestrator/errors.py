"""Error taxonomy for image acquisition."""

from datetime import datetime


class ImageAcquisitionError(Exception):
    """Base class for all acquisition failures."""


class ConfigurationError(ImageAcquisitionError):
    """Raised when a provider is missing a required credential."""


class RateLimitExceeded(ImageAcquisitionError):
    """Raised when a provider quota is exhausted (locally or upstream 429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: float | None = None,
        reset_at: datetime | None = None,
    ) -> None:
        self.retry_after = retry_after
        self.reset_at = reset_at
        super().__init__(message)


class UpstreamError(ImageAcquisitionError):
    """Non-retryable HTTP failure from an upstream provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientUpstreamError(UpstreamError):
    """5xx, timeout or network failure. Safe to retry."""


class EmptyImageError(TransientUpstreamError):
    """Upstream answered OK but with an empty image payload."""


class NoRelevantResult(ImageAcquisitionError):
    """Search provider found no acceptable candidate for the word."""


class AllProvidersExhausted(ImageAcquisitionError):
    """Every configured provider is excluded by its rate limiter."""


class AggregateFailure(ImageAcquisitionError):
    """Every candidate provider failed; carries each provider's reason."""

    def __init__(self, word: str, failures: dict[str, BaseException]) -> None:
        self.word = word
        self.failures = dict(failures)
        reasons = "; ".join(
            f"{name}: {type(exc).__name__}: {exc}" for name, exc in self.failures.items()
        )
        super().__init__(f"All image providers failed for '{word}' ({reasons})")

    @property
    def providers_tried(self) -> list[str]:
        """Names of providers attempted, in the order they were recorded."""
        return list(self.failures)


def is_retryable(exc: BaseException) -> bool:
    """Whether an upstream failure should be retried with backoff."""
    return isinstance(exc, (TransientUpstreamError, RateLimitExceeded))
