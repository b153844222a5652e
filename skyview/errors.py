from __future__ import annotations

from typing import Optional


class SkyViewError(RuntimeError):
    """Base class for errors raised by SkyView services."""


class UpstreamFetchError(SkyViewError):
    """Raised when any stage of the weather aggregation fails.

    ``stage`` names the lookup that failed (``points``, ``forecast``,
    ``hourly``, ``stations``, ``observation`` or ``parse``).
    """

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.url = url
        self.status_code = status_code


class GeocodingError(SkyViewError):
    """Raised when the geocoding provider cannot answer a lookup."""


class EmailConfigurationError(SkyViewError):
    """Raised when the e-mail provider credentials are missing."""


class EmailSendError(SkyViewError):
    """Raised when the e-mail provider rejects a message."""
