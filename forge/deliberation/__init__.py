"""Multi-agent deliberation: two evaluation rounds and a weighted vote.

Exports:
    - DeliberationCoordinator, DeliberationOutcome: Round 1 / Round 2
    - tally_votes, Vote, VoteTally: confidence-weighted voting
    - HistoryProvider: prior-brief summaries for evaluators
"""

from forge.deliberation.coordinator import DeliberationCoordinator, DeliberationOutcome
from forge.deliberation.history import HistoryProvider
from forge.deliberation.voting import DEFAULT_CONCERN_WEIGHT, Vote, VoteTally, contribution, tally_votes


__all__ = [
    "DEFAULT_CONCERN_WEIGHT",
    "DeliberationCoordinator",
    "DeliberationOutcome",
    "HistoryProvider",
    "Vote",
    "VoteTally",
    "contribution",
    "tally_votes",
]
