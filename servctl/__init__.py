"""servctl - storage decision engine for self-hosted servers."""

__version__ = "0.1.0"
