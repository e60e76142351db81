"""Exceptions raised by the journal and narrative collaborators."""

class HexcastError(Exception):
    """Base class for hexcast errors."""

class JournalError(HexcastError):
    """A journal store could not complete a request."""

class NarrativeError(HexcastError):
    """The narrative service failed to produce a summary."""

class NarrativeInFlightError(NarrativeError):
    """A summary for this entry is already being generated."""

    def __init__(self, entry_id: str):
        super().__init__(f"summary already in progress for entry {entry_id}")
        self.entry_id = entry_id


class NoteTooLongError(JournalError):
    """A journal note is over the word limit."""

    def __init__(self, words: int, limit: int):
        super().__init__(f"note has {words} words; the limit is {limit}")
        self.words = words
        self.limit = limit
