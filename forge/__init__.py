"""Forge: multi-agent brief pipeline.

A brief is evaluated by a council of evaluator roles over two deliberation
rounds, voted on, planned by an architect, critiqued, then built (pull
request) or run (output files), with optional plan approval, brand review
and deploy stages.
"""

__version__ = "0.1.0"
