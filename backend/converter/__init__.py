"""Media conversion service built on ffmpeg and Pillow."""

__version__ = "1.0.0"
