"""callsim - call-quality test harness for containerized call participants."""

__version__ = "0.1.0"
