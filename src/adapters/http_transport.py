"""HTTP transport adapter.

Implements the core HttpTransport port with urllib. The forwarder calls it
from a detached thread, so a blocking request never stalls the event loop.
"""

from __future__ import annotations

import http.client
import urllib.error
import urllib.request
from typing import Mapping

from core.errors import DeliveryError


class UrllibTransport:
    """POSTs a pre-encoded body and reports the response status code."""

    def post(self, url: str, body: bytes, headers: Mapping[str, str], timeout: float) -> int:
        try:
            request = urllib.request.Request(url, data=body, method="POST")
        except ValueError as exc:
            raise DeliveryError(f"invalid endpoint {url!r}: {exc}") from exc
        for name, value in headers.items():
            request.add_header(name, value)

        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                return int(response.status)
        except urllib.error.HTTPError as e:
            # Non-2xx responses are a status, not a transport failure; the
            # forwarder decides whether to retry.
            return int(e.code)
        except urllib.error.URLError as e:
            raise DeliveryError(f"transport error: {e.reason}") from e
        except (OSError, http.client.HTTPException) as e:
            raise DeliveryError(f"transport error: {e}") from e
        except ValueError as e:
            # http.client encodes header values as latin-1.
            raise DeliveryError(f"invalid request: {e}") from e
