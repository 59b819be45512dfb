"""Matching for the haulmatch dispatch core."""

from .scorer import MatchScorer, MatchWeights
from .engine import Candidate, MatchingConfig, MatchingEngine

__all__ = ["MatchScorer", "MatchWeights", "Candidate", "MatchingConfig", "MatchingEngine"]
