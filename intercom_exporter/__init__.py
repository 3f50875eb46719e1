"""Prometheus exporter for door intercom devices (Beward, Akuvox, Qtech)."""

__version__ = "1.0.0"
