"""runhistory - test run history and pass-rate statistics."""

__version__ = "0.1.0"
