"""Knowledge base bot: document sync, keyword retrieval and chat answers."""

__version__ = "1.0.0"
