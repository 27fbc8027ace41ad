"""Prometheus exporter for Homebridge accessories."""

__version__ = "0.1.0"
