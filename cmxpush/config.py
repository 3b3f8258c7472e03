# cmxpush/config.py

from argparse import Namespace
from dataclasses import dataclass

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4567


@dataclass(frozen=True)
class Settings:
    """
    Process-wide receiver configuration, built once at startup.

    Attributes
    ----------
    secret
        Shared secret the provider must echo in every pushed batch.
    validator
        Token returned verbatim on the provider's handshake request.
    host
        Interface to bind.
    port
        Port to bind.
    db_path
        SQLite database; ":memory:" keeps client state for the process lifetime only.
    log_level
        Level applied to all cmxpush loggers.
    """
    secret:    str
    validator: str
    host:      str = DEFAULT_HOST
    port:      int = DEFAULT_PORT
    db_path:   str = ":memory:"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("secret must not be empty")
        if not self.validator:
            raise ValueError("validator must not be empty")

    @classmethod
    def from_args(cls, args: Namespace) -> "Settings":
        """Build settings from the `cmxpush serve` namespace."""
        return cls(
            secret=args.secret,
            validator=args.validator,
            host=args.host,
            port=args.port,
            db_path=args.db,
            log_level=args.log_level,
        )
