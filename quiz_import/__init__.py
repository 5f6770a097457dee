"""Question import pipeline: parse free-form quiz text into structured questions."""

__version__ = "0.1.0"
