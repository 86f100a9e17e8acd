"""Conversational vocational assessment engine."""
