"""End-to-end deployment verification for a managed voice bot."""

__version__ = "1.0.0"
