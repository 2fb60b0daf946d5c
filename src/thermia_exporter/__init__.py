"""
Top-level package for the Thermia Online heat-pump client.

This package provides the Azure B2C browser-flow login, a shared token cache,
the Thermia REST client and decoding of register telemetry into readings.
"""

__all__: list[str] = []
