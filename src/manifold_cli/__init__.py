"""Manifold - versioned spec documents with gated workflow and three-way sync."""

__version__ = "0.1.0"
