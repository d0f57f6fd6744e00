"""
Service Errors
==============

Exceptions raised by the service layer. Routers translate them into HTTP
responses; every failure body the API sends looks like {"error": "..."}.

Upstream failures (weather provider or model unreachable) are NOT in here -
the clients absorb those and return None so callers can fall back.
"""


class TelemetryError(Exception):
    """Base class. status_code is the HTTP status the router should use."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidReadingError(TelemetryError):
    """Malformed or missing input fields."""

    status_code = 400


class ModelOutputUnusableError(TelemetryError):
    """The model answered but the answer can't be used."""

    status_code = 502


class ModelNotConfiguredError(TelemetryError):
    """Model correction is required but no model is configured."""

    status_code = 503
