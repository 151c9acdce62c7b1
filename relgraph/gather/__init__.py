"""
RELGRAPH v1.0 · Relation Input Gathering.

Reduces collaborator repositories to typed relation-input records.
"""

from relgraph.gather.collector import RelationGatherer

__all__ = ["RelationGatherer"]
