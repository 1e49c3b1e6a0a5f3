"""Keep review comment threads in sync with static analysis results."""

__version__ = "0.1.0"
