"""Pipeline orchestration.

Wires the activities into one run per input document.
"""
