"""ChatSync - chat sessions with id-merged message persistence."""

__version__ = "1.0.0"
