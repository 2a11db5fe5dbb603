"""Prompt rendering for evaluator, reviewer and execution roles.

Prompts are built-in Jinja2 templates rendered with StrictUndefined so a
missing variable fails loudly instead of producing a half-filled prompt.
Templates carry structure only (brief fields, prior verdicts, plan text
and the JSON answer shape). Judging criteria come from each role's
definition.

Project instruction files found in the project's working copy are
prepended as context.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined

from forge.core.constants import PROJECT_INSTRUCTION_FILES, PROJECT_INSTRUCTION_MAX_CHARS
from forge.models import Brief, BriefHistoryEntry


logger = logging.getLogger(__name__)


# =============================================================================
# Built-in Templates
# =============================================================================

_BRIEF_BLOCK = """## Brief
- Title: {{ brief.title }}
- Description: {{ brief.description or "(none)" }}
- Type: {{ brief.brief_type.value }}
- Project: {{ brief.project.name if brief.project else "Unassigned" }}
- Claimed outcome tier: {{ brief.outcome_tier or "?" }}
- Claimed outcome type: {{ brief.outcome_type or "Not specified" }}
- Claimed impact score: {{ brief.impact_score or "?" }}/10
"""

_VERDICT_SHAPE = (
    'Respond with ONLY valid JSON: {"verdict":"approve|reject|concern",'
    '"reasoning":"2-3 sentences","confidence":1-10'
    '{% if with_suggestions %},"suggested_tier":1-4,"suggested_impact":1-10{% endif %}}'
)

BUILTIN_PROMPTS: dict[str, str] = {
    "brief": _BRIEF_BLOCK,

    "evaluate": """{{ context }}You are the {{ role.name }} evaluator.

## Criteria
{{ role.criteria }}

{% include "brief" %}
{% if history %}
## Recent briefs
{% for item in history %}
- {{ item.title }} ({{ item.brief_type.value }}, {{ item.status.value }}{% if item.decision %}, {{ item.decision }} at {{ "%.1f"|format(item.weighted_score or 0) }}{% endif %})
{% endfor %}
{% endif %}

""" + _VERDICT_SHAPE,

    "deliberate": """{{ context }}You are the {{ role.name }} evaluator, in the second round of deliberation.

## Criteria
{{ role.criteria }}

{% include "brief" %}

## Round 1 verdicts
{% for vote in round1 %}
- {{ vote.agent }}: {{ vote.verdict.value }} (confidence {{ vote.confidence }}): {{ vote.reasoning }}
{% endfor %}

Reconsider your position in light of your colleagues' reasoning. Hold firm or revise.

""" + _VERDICT_SHAPE,

    "review": """{{ context }}You are the {{ role.name }} reviewer.

## Criteria
{{ role.criteria }}

{% include "brief" %}

## {{ subject_title }}
{{ subject }}

""" + _VERDICT_SHAPE,

    "architect": """{{ context }}You are the Architect. Produce an implementation plan for the brief.

## Repository
- URL: {{ repo_url or "Not specified" }}
- Default branch: {{ default_branch }}
{% if brief.project and brief.project.context_notes %}
- Notes: {{ brief.project.context_notes }}
{% endif %}

{% include "brief" %}

Start directly with "## Files", then "## Approach", "## Key Decisions", "## Risks", "## Verification".
""",

    "architect_revision": """{{ context }}You are the Architect. Revise your plan to address the feedback below.

{% include "brief" %}

## Current plan
{{ plan }}

## {{ feedback_title }}
{{ feedback }}

Return the complete revised plan, starting directly with "## Files".
""",

    "builder": """{{ context }}You are the Builder. Execute the approved plan.

{% include "brief" %}

## Plan
{{ plan }}

## Git
- Work on branch `{{ branch }}` based on `{{ default_branch }}`
- Commit, push the branch and open a pull request
- Print the pull request URL as the last line of your output
""",

    "runner": """{{ context }}You are the Runner. Carry out the task described by the brief following the plan.

{% include "brief" %}

## Plan
{{ plan }}

For every file you produce, print a line of the form `OUTPUT: <path>`.
""",

    "deployer": """{{ context }}You are the Deployer. Deploy the merged change for this brief.

{% include "brief" %}
{% if pr_url %}
## Pull request
{{ pr_url }}
{% endif %}
{% if deploy_notes %}
## Deployment notes
{{ deploy_notes }}
{% endif %}

Report the deployment result in one paragraph.
""",
}


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=DictLoader(BUILTIN_PROMPTS),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def render(template_name: str, **context: Any) -> str:
    """Render a built-in prompt template."""
    context.setdefault("context", "")
    return _environment().get_template(template_name).render(**context)


# =============================================================================
# Project context
# =============================================================================

def load_project_context(project_path: str | None) -> str:
    """Read project instruction files from a working copy.

    Returns an empty string when the path is missing or holds no
    instruction files. Unreadable files are skipped.
    """
    if not project_path:
        return ""
    root = Path(project_path)
    if not root.is_dir():
        return ""

    sections = []
    for name in PROJECT_INSTRUCTION_FILES:
        candidate = root / name
        if not candidate.is_file():
            continue
        try:
            text = candidate.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", candidate, e)
            continue
        sections.append(f"## Project instructions ({name})\n\n{text[:PROJECT_INSTRUCTION_MAX_CHARS]}")

    if not sections:
        return ""
    return "# Context\n\n" + "\n\n---\n\n".join(sections) + "\n\n---\n\n"


def branch_name(brief: Brief) -> str:
    """Working branch for a brief, e.g. ``forge/add-login-page``."""
    if brief.branch:
        return brief.branch
    slug = re.sub(r"[^a-z0-9]+", "-", brief.title.lower()).strip("-")
    return f"forge/{slug or brief.id}"


# =============================================================================
# Prompt builders
# =============================================================================

def evaluation_prompt(role: Any, brief: Brief, history: list[BriefHistoryEntry] | None, context: str = "") -> str:
    return render(
        "evaluate",
        role=role,
        brief=brief,
        history=history or [],
        with_suggestions=role.suggests_outcome,
        context=context,
    )


def deliberation_prompt(role: Any, brief: Brief, round1: list[Any], context: str = "") -> str:
    return render(
        "deliberate",
        role=role,
        brief=brief,
        round1=round1,
        with_suggestions=False,
        context=context,
    )


def review_prompt(role: Any, brief: Brief, subject: str, context: str = "") -> str:
    return render(
        "review",
        role=role,
        brief=brief,
        subject=subject,
        subject_title=role.subject_title,
        with_suggestions=False,
        context=context,
    )


def architect_prompt(brief: Brief, context: str = "") -> str:
    return render(
        "architect",
        brief=brief,
        repo_url=brief.target_repo_url,
        default_branch=brief.project.default_branch if brief.project else "main",
        context=context,
    )


def architect_revision_prompt(
    brief: Brief,
    plan: str,
    feedback: str,
    feedback_title: str = "Critic feedback",
    context: str = "",
) -> str:
    return render(
        "architect_revision",
        brief=brief,
        plan=plan,
        feedback=feedback,
        feedback_title=feedback_title,
        context=context,
    )


def builder_prompt(brief: Brief, plan: str, context: str = "") -> str:
    return render(
        "builder",
        brief=brief,
        plan=plan,
        branch=branch_name(brief),
        default_branch=brief.project.default_branch if brief.project else "main",
        context=context,
    )


def runner_prompt(brief: Brief, plan: str, context: str = "") -> str:
    return render("runner", brief=brief, plan=plan, context=context)


def deployer_prompt(brief: Brief, context: str = "") -> str:
    return render(
        "deployer",
        brief=brief,
        pr_url=brief.pr_url,
        deploy_notes=brief.project.deploy_notes if brief.project else None,
        context=context,
    )
