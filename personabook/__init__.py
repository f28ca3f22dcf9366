"""PersonaBook: paid, time-boxed chat sessions with conversational personas."""

__version__ = "0.1.0"
