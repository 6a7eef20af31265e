"""HTTP round-trip prober for wsping."""

import logging
import time

import requests

logger = logging.getLogger(__name__)

KNOWN_SCHEMES = ("http://", "https://")
DEFAULT_SCHEME = "http://"


def format_address(address: str) -> str:
    """Prefix address with a scheme unless it already has one (pure function).

    Examples:
        >>> format_address("example.com")
        'http://example.com'
        >>> format_address("https://example.com")
        'https://example.com'
    """
    if address.startswith(KNOWN_SCHEMES):
        return address
    return DEFAULT_SCHEME + address


class HttpProber:
    """Prober that times one HTTP GET round trip per measurement.

    Latency is measured until the response headers arrive; the body is
    never downloaded. Any HTTP status counts as a completed round trip.
    The connection is released before measure() returns.
    """

    def __init__(self, timeout_s: float = 5.0):
        """Initialize HTTP prober with timeout.

        Args:
            timeout_s: Maximum time to wait for a response in seconds.
        """
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")

        self.timeout_s = timeout_s

        logger.debug("HttpProber initialized: timeout_s=%s", timeout_s)

    def measure(self, target: str) -> tuple[float, bool]:
        """Perform one GET against target.

        Args:
            target: URL to request, normally already passed through format_address

        Returns:
            (latency_ms, success); latency_ms is 0.0 on failure
        """
        start = time.perf_counter()

        try:
            with requests.get(target, timeout=self.timeout_s, stream=True) as response:
                latency_ms = (time.perf_counter() - start) * 1000.0
                logger.debug(
                    "Probe completed: target=%s, status=%d, latency=%.3fms",
                    target,
                    response.status_code,
                    latency_ms,
                )
        except requests.Timeout:
            logger.debug("Probe timeout: target=%s, timeout=%ss", target, self.timeout_s)
            return 0.0, False
        except requests.RequestException as e:
            logger.debug("Probe failed: target=%s, error=%s", target, e)
            return 0.0, False
        except Exception as e:
            # Anything else (e.g. an invalid URL slipping past requests) is still a lost probe
            logger.warning("Probe error: target=%s, error=%s", target, str(e), exc_info=True)
            return 0.0, False

        return round(latency_ms, 3), True
