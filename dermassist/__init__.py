"""Skin-condition classification and advice orchestration service."""

__version__ = "0.1.0"
