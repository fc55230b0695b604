"""Identity resolution, diffs and summaries for declarative resource packages."""

__version__ = "0.1.0"
