"""Pipeline stage functions.

Each module implements one stage of the feed-map pipeline:
resolve_archive → scan_placemarks → classify_feed / simplify_lines →
deduplicate_lines → assemble_output.
"""
