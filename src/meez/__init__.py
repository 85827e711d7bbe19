"""
Meez - Recipe ingestion and normalization pipeline.

Turns a recipe URL, pasted text, photographed page or video transcript
into one canonical structured recipe.
"""

__version__ = "0.3.0"
