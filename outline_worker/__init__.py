"""Podcast outline worker: turns free-form notes into a structured outline via an LLM."""
