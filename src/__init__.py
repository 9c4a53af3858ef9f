"""peoplegraph — entity resolution and relation-graph consistency engine."""

from peoplegraph.version import __version__

__all__ = ["__version__"]
