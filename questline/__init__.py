"""Questline: quest & progression engine for a gamified habit tracker."""

__version__ = "0.1.0"
