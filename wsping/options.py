"""Configuration message decoding and probe option resolution."""

import json
import logging
from dataclasses import dataclass, fields, replace

from wsping.errors import InvalidOptionError, ReadError

logger = logging.getLogger(__name__)

# Defaults applied when a field is absent from the configuration message
DEFAULT_COUNT = 0  # 0 means probe until the session ends
DEFAULT_INTERVAL = 1  # Tick units between probes
DEFAULT_TTL = 64
DEFAULT_PACKET_SIZE = 56
DEFAULT_TIMEOUT = 5  # Seconds
DEFAULT_WAIT_TIME = 10  # Seconds
DEFAULT_TOS = 0
DEFAULT_PRELOAD = 0
DEFAULT_SWEEP_MIN = 0
DEFAULT_SWEEP_MAX = 0
DEFAULT_SWEEP_INCREMENT = 0

# Flood mode pins the interval to the smallest tick
FLOOD_INTERVAL = 1

# Largest interval whose millisecond period still fits a QTimer
MAX_INTERVAL = 2_147_483

# Field name -> JSON key, mirroring the flags of the ping tool
INT_KEYS = {
    "count": "c",
    "interval": "i",
    "ttl": "m",
    "packet_size": "s",
    "timeout": "t",
    "wait_time": "W",
    "tos": "z",
    "preload": "l",
    "sweep_min": "g",
    "sweep_max": "G",
    "sweep_increment": "h",
}
STR_KEYS = {
    "source_address": "S",
    "pattern": "p",
    "mask": "M",
}
FLAG_KEYS = {
    "adaptive": "a",
    "audible": "a_flag",
    "debug": "d",
    "flood": "f",
    "numeric": "n",
    "quiet": "q",
    "timestamped": "D",
    "verbose": "v",
}


@dataclass(frozen=True)
class ConfigMessage:
    """Sparse configuration sent by the client as the first frame.

    None means the client left the field out and the default applies.
    """

    address: str
    count: int | None = None
    interval: int | None = None
    ttl: int | None = None
    packet_size: int | None = None
    timeout: int | None = None
    wait_time: int | None = None
    tos: int | None = None
    preload: int | None = None
    sweep_min: int | None = None
    sweep_max: int | None = None
    sweep_increment: int | None = None
    source_address: str | None = None
    pattern: str | None = None
    mask: str | None = None
    adaptive: bool | None = None
    audible: bool | None = None
    debug: bool | None = None
    flood: bool | None = None
    numeric: bool | None = None
    quiet: bool | None = None
    timestamped: bool | None = None
    verbose: bool | None = None


@dataclass(frozen=True)
class ProbeOptions:
    """Fully resolved options, fixed for the lifetime of a session."""

    count: int = DEFAULT_COUNT
    interval: int = DEFAULT_INTERVAL
    ttl: int = DEFAULT_TTL
    packet_size: int = DEFAULT_PACKET_SIZE
    timeout: int = DEFAULT_TIMEOUT
    wait_time: int = DEFAULT_WAIT_TIME
    tos: int = DEFAULT_TOS
    preload: int = DEFAULT_PRELOAD
    sweep_min: int = DEFAULT_SWEEP_MIN
    sweep_max: int = DEFAULT_SWEEP_MAX
    sweep_increment: int = DEFAULT_SWEEP_INCREMENT
    source_address: str = ""
    pattern: str = ""
    mask: str = ""
    adaptive: bool = False
    audible: bool = False
    debug: bool = False
    flood: bool = False
    numeric: bool = False
    quiet: bool = False
    timestamped: bool = False
    verbose: bool = False

    @property
    def sweeping(self) -> bool:
        """True when payload size cycles between sweep_min and sweep_max."""
        return self.sweep_max > 0


def _typed_field(document: dict, key: str, expected: type):
    """Fetch an optional field, enforcing its JSON type."""
    value = document.get(key)
    if value is None:
        return None

    # bool is a subclass of int; a flag is never a number
    if expected is int and isinstance(value, bool):
        raise ReadError(f"field {key!r} must be an integer, got boolean")
    if not isinstance(value, expected):
        raise ReadError(
            f"field {key!r} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def parse_config_message(payload: str | bytes) -> ConfigMessage:
    """Decode the client's configuration frame (pure function).

    Args:
        payload: Raw JSON text of the first frame

    Returns:
        ConfigMessage with absent fields left as None

    Raises:
        ReadError: If the payload is not a JSON object, lacks an address,
                   or carries a field of the wrong type
    """
    try:
        document = json.loads(payload)
    except (ValueError, TypeError) as e:
        raise ReadError(f"malformed configuration: {e}") from e

    if not isinstance(document, dict):
        raise ReadError("configuration must be a JSON object")

    address = document.get("address")
    if address is None:
        address = document.get("target")
    if not isinstance(address, str) or not address.strip():
        raise ReadError("configuration requires a non-empty 'address'")

    values = {"address": address.strip()}
    for name, key in INT_KEYS.items():
        values[name] = _typed_field(document, key, int)
    for name, key in STR_KEYS.items():
        values[name] = _typed_field(document, key, str)
    for name, key in FLAG_KEYS.items():
        values[name] = _typed_field(document, key, bool)

    return ConfigMessage(**values)


def validate_options(options: ProbeOptions) -> None:
    """Check resolved options, failing on the first broken rule.

    Raises:
        InvalidOptionError: Describing the first rule that failed
    """
    if options.count < 0:
        raise InvalidOptionError("count cannot be negative")
    if options.interval < 0:
        raise InvalidOptionError("wait interval cannot be negative")
    if options.interval > MAX_INTERVAL:
        raise InvalidOptionError(f"wait interval cannot exceed {MAX_INTERVAL}")
    if options.ttl <= 0 or options.ttl > 255:
        raise InvalidOptionError("TTL must be between 1 and 255")
    if options.packet_size < 0:
        raise InvalidOptionError("packet size cannot be negative")
    if options.sweep_max > 0:
        if options.sweep_min >= options.sweep_max:
            raise InvalidOptionError("sweep min size must be less than max size")
        if options.sweep_increment <= 0:
            raise InvalidOptionError("sweep increment size must be positive")
    if options.timeout <= 0:
        raise InvalidOptionError("timeout must be positive")
    if options.wait_time <= 0:
        raise InvalidOptionError("wait time must be positive")
    if options.tos < 0 or options.tos > 255:
        raise InvalidOptionError("TOS must be between 0 and 255")


def resolve_options(message: ConfigMessage) -> ProbeOptions:
    """Merge a sparse message over the defaults and validate the result.

    Flood mode overrides any interval the client supplied.

    Raises:
        InvalidOptionError: If the merged options fail validation
    """
    overrides = {
        f.name: getattr(message, f.name)
        for f in fields(ProbeOptions)
        if getattr(message, f.name) is not None
    }
    options = ProbeOptions(**overrides)

    validate_options(options)

    if options.flood:
        options = replace(options, interval=FLOOD_INTERVAL)

    logger.debug("Options resolved: %s", options)
    return options


def tick_byte_size(options: ProbeOptions, tick_index: int) -> int:
    """Return the payload size for a 0-based tick.

    Sweeping ramps from sweep_min in sweep_increment steps and wraps over
    the inclusive [sweep_min, sweep_max] span.
    """
    if not options.sweeping:
        return options.packet_size

    span = options.sweep_max - options.sweep_min + 1
    return options.sweep_min + (tick_index * options.sweep_increment) % span
