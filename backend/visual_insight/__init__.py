"""Visual Insight: natural-language chart generation over uploaded datasets."""

__version__ = "1.0.0"
