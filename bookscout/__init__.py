"""Manga / light-novel volume 1 catalog builder."""

__version__ = "0.2.0"
