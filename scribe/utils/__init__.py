"""
UTILITIES PACKAGE
=================

Helpers used by the services (no HTTP routing, no business logic):

  retry     - with_retry(fn): awaits fn(); on transient failure retries with exponential backoff.
  sequences - find_last(items, predicate): last matching element or None.
"""
