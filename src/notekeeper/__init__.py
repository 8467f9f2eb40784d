"""
Notekeeper - a local note store for rich-text notes.
This package implements the core of a note-taking application: an ordered
collection of formatted notes with drag-and-drop reordering, live search,
and crash-safe persistence driven by a debounced background autosave.

This version uses a single owner thread plus one background save worker.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notekeeper")
except PackageNotFoundError:
    __version__ = "0.1.0"
