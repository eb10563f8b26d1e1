"""HTTP cache building blocks: configuration, request contexts, cache keys, coalescing and tag storage."""

__version__ = "0.1.0"