"""Local cleft / non-cleft photo classification service."""

__version__ = "0.1.0"
