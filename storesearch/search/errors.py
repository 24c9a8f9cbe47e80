"""Exceptions raised by search index clients."""


class SearchIndexError(Exception):
    """Base class for failures talking to the search index."""


class IndexUnavailableError(SearchIndexError):
    """The index service could not be reached, timed out, or answered 5xx."""


class DocumentRejectedError(SearchIndexError):
    """The index refused a single document write (4xx)."""

    def __init__(self, document_id: str, reason: str) -> None:
        super().__init__(f"Document {document_id} rejected: {reason}")
        self.document_id = document_id
        self.reason = reason
