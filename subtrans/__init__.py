"""Batch subtitle translation with resumable LLM requests."""

__version__ = "0.1.0"
