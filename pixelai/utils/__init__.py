"""
UTILITIES PACKAGE
=================

Helpers used by the services (no HTTP, no state):

  time_info - utc_now() and parse_timestamp() for session activity times.
  export    - export_markdown() / parse_markdown_export() for the portable transcript.
"""
