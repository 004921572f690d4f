"""calmaint — calendar-driven maintenance mode for live multi-tenant services."""

__version__ = "0.1.0"
