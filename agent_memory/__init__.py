"""Agent memory service: transcripts, LLM extraction, and consolidated long-term memory."""

__version__ = "0.1.0"
