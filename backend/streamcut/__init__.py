"""
streamcut: lossless segment export backend.

Segments are defined over a single source file and exported with FFmpeg
stream copy, either as separate files or merged into one container.

Nothing here re-encodes media. Every engine invocation is a remux.
"""

__version__ = "0.1.0"
