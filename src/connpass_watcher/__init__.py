"""connpass-watcher: mirror interesting connpass events into Google Calendar."""

__version__ = "0.1.0"
