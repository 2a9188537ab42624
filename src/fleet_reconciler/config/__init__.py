"""
Configuration management for the fleet reconcilers.

Contains the Pydantic settings read from the Lambda environment (or a local
.env file when running the CLI).
"""
