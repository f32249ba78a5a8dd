"""paxjournal: local-first journal and todo list synced to Notion."""

__version__ = "0.1.0"
