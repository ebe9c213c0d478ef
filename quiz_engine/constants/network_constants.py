"""Network configuration constants for the quiz engine HTTP host."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
