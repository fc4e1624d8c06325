"""Search service exceptions."""


class AdapterFailure(Exception):
    """A call to a search backend failed.

    ``source`` names the backend (``keyword``, ``embedding``, ``vector_store``
    or ``catalog``).
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class SearchFailure(Exception):
    """Generic failure raised by the orchestrator for any unrecovered error."""

    def __init__(self, message: str = "Search failed"):
        super().__init__(message)
