"""Condense a repository's text files into a bounded set of documents."""

__version__ = "0.1.0"
