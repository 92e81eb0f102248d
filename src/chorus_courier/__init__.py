"""Session bootstrap and encrypted message fan-out for Chorus messaging clients."""

__version__ = "0.1.0"
