"""Residential society maintenance tracker."""

__version__ = "0.1.0"
