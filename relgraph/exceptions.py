"""
RELGRAPH v1.0 · Custom Exceptions.

Typed error hierarchy for the graph engine. Only build failures ever
reach the user; everything else is recovered where it is raised.
"""


class RelGraphError(Exception):
    """Base exception for all RELGRAPH errors."""


class CollaboratorReadError(RelGraphError):
    """Raised when a collaborator dataset file cannot be read or validated."""


class GraphBuildError(RelGraphError):
    """Raised when graph fusion fails unexpectedly."""


class CacheDecodeError(RelGraphError):
    """Raised when a persisted layout snapshot cannot be decoded."""


class UnknownRelationError(RelGraphError):
    """Raised when a deduced relation id is not known upstream."""


class PersonNotFound(RelGraphError):
    """Raised when a person id is not known to the people repository."""
