"""Domain records and enums.

Pure data structures (Pydantic v2). The domain knows nothing about HTTP,
the CLI or exporters: only Skytap concepts and console results.
"""
