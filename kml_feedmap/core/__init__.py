"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants shared across stages
- exceptions: Custom exception hierarchy
- result_cache: Cross-run memoisation of processed documents
"""
