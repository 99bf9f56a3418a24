"""Minimal HTTP GET for local health endpoints.

Only used by the debug bundle to ask the core service whether it is
healthy, so there is no TLS configuration, retry or download support.
"""

from __future__ import annotations

import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from gwops import __version__
from gwops.core.result import Err, Ok, Result

__all__ = ["HttpClient", "HttpError", "UrllibHttpClient"]

DEFAULT_TIMEOUT = 3.0


@dataclass(frozen=True, slots=True)
class HttpError:
    """Attributes:
    url: The URL that failed
    status: HTTP status code, 0 when no response was received
    message: Reason phrase or network error
    body: Response body of an HTTP error, if any
    """

    url: str
    status: int
    message: str
    body: str = ""

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


class HttpClient(Protocol):
    def get_text(self, url: str) -> Result[str, HttpError]: ...


class UrllibHttpClient:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self.user_agent = f"gwops/{__version__}"

    def get_text(self, url: str) -> Result[str, HttpError]:
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return Ok(response.read().decode("utf-8", errors="replace"))
        except urllib.error.HTTPError as e:
            # unhealthy services often explain why in the body
            body = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            return Err(HttpError(url, e.code, str(e.reason), body))
        except urllib.error.URLError as e:
            return Err(HttpError(url, 0, str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url, 0, f"no answer within {self.timeout}s"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url, 0, str(e)))
