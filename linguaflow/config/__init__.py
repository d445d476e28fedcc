"""Configuration module for LinguaFlow."""

from .settings import Config

__all__ = ['Config']
