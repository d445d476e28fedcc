"""LinguaFlow: spaced-repetition flashcards with local-first cloud sync."""

__version__ = "1.0.0"
