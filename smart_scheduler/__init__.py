"""Smart scheduling engine: places tasks into users' working hours."""

__version__ = "0.1.0"
