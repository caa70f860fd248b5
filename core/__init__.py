"""
Core utilities and configuration for the App Store analytics exporter.

This package provides foundational components used throughout the export:

Modules:
    config: Application configuration and environment variable management
    database: Async engine creation for the SQL warehouse
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.exceptions import ApiError, MetadataError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()
"""

__all__ = [
    "settings",
    "create_engine",
    "setup_logging",
    # Exceptions
    "ExportException",
    "RetryableError",
    "NonRetryableError",
    "AuthError",
    "NotAuthenticatedError",
    "InvalidInputError",
    "MetadataError",
    "DateRangeError",
    "IncompleteDataError",
    "ApiError",
    "RateLimitError",
    "ServerError",
    "NetworkError",
    "DataFormatError",
    "SinkInitError",
    "SinkWriteError",
]
