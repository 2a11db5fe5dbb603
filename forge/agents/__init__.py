"""Evaluator and reviewer roles, prompt rendering and verdict parsing.

Exports:
    - Evaluator, Reviewer: oracle-backed judging roles
    - RoleDefinition and the built-in role definitions
    - parse_evaluation: oracle text -> EvaluationResult
"""

from forge.agents.parser import clamp_confidence, parse_evaluation
from forge.agents.roles import (
    ACCOUNTANT,
    BRAND_GUARDIAN,
    CRITIC,
    CYNIC,
    EVALUATOR_ROLES,
    GATEKEEPER,
    SKEPTIC,
    Evaluator,
    Reviewer,
    RoleDefinition,
    describe_verdict,
    verdict_log_level,
)


__all__ = [
    "ACCOUNTANT",
    "BRAND_GUARDIAN",
    "CRITIC",
    "CYNIC",
    "EVALUATOR_ROLES",
    "GATEKEEPER",
    "SKEPTIC",
    "Evaluator",
    "Reviewer",
    "RoleDefinition",
    "clamp_confidence",
    "describe_verdict",
    "parse_evaluation",
    "verdict_log_level",
]
