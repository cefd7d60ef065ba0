"""
tokengen core module

Shared building blocks: constants, unit and duration helpers, the exception
hierarchy, address validation, configuration, logging, metrics and durable
state files.
"""

__all__ = []
