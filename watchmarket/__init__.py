"""Watch marketplace negotiation service."""

__all__: list[str] = []
