"""Shared infrastructure: configuration, logging, errors, JSON parsing, LLM providers."""
