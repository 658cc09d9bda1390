"""Woven City: an idle simulation of a city becoming aware of itself."""

__version__ = "0.1.0"
