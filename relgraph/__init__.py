"""
RELGRAPH · Relationship Graph Engine.

Fuses referrals, recruiting lineage, meetings, messages, note mentions,
ghost mentions and deduced family ties into one typed graph of people,
and lays it out with a cached, cancellable force simulation.
"""

__version__ = "1.0.0"
__author__ = "Borja Moskv"

from relgraph.engine import RelationshipGraphEngine

__all__ = ["RelationshipGraphEngine", "__version__"]
