"""Error taxonomy shared by ingestion, retrieval, generation and the relay."""

from __future__ import annotations


class RagRelayError(Exception):
    """Base class for all package errors."""


class ConfigurationError(RagRelayError, ValueError):
    """Invalid setup such as a bad chunk size/overlap pair. Never retried."""


class RetrievalError(RagRelayError):
    """An embedding call failed during `add()` or `query()`."""


class GenerationError(RagRelayError):
    """A model call failed, either whole-response or mid-stream."""


class DimensionMismatchError(RagRelayError):
    """An embedder returned a vector whose length differs from the index."""


class EmbedderMismatchError(RagRelayError):
    """Vectors from two different embedding spaces were mixed in one index."""


class InvalidRequestError(RagRelayError, ValueError):
    """A chat request was rejected before any frame was written."""
