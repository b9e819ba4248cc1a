"""
Registration numbering rules (``registry_kernel.domain.numbering``).

Pure helpers shared by the sequence allocator and the document registry.

* A configuration that resets annually keys its counter by calendar year.
* A configuration that does not reset uses a single counter whose year key
  is ``SHARED_SEQUENCE_YEAR``.
* The formatted number is ``"{number}/{year}"`` for annual sequences and
  ``"{number}"`` otherwise.  Once stored on a document it never changes,
  even if the configuration is later switched.
"""

# Year key for counters of configurations that never reset
SHARED_SEQUENCE_YEAR = 0


def sequence_year(resets_annually: bool, year: int | None) -> int:
    """Normalize ``year`` to the counter key for a configuration."""
    if not resets_annually:
        return SHARED_SEQUENCE_YEAR
    if year is None or year < 1:
        raise ValueError(f"Annual sequences need a calendar year, got {year!r}")
    return year


def first_number(starting_number: int) -> int:
    """Counter seed so that the first allocation returns ``starting_number``."""
    return starting_number - 1


def format_registration_number(number: int, year: int | None) -> str:
    """Render the human-readable registration number."""
    if year is None or year == SHARED_SEQUENCE_YEAR:
        return str(number)
    return f"{number}/{year}"
