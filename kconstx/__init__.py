"""kconst-extract — resolve kernel header constants per architecture."""

__version__ = "0.1.0"
