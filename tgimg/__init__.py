"""Image pipeline producing resized variants, ThumbHash placeholders and a manifest."""

__version__ = "0.1.0"