"""PostgREST store adapter.

Talks to a Supabase/PostgREST REST endpoint with httpx. Column names
follow the briefs database used by the dashboard:

- briefs: id, title, brief, brief_type, status, pipeline_stage,
  architect_plan, pr_url, output_path, repo_url, branch_name, fast_track,
  auto_deploy, require_plan_approval, outcome_tier, outcome_type,
  impact_score, project_id, rejection_reason, failure_reason
- projects: id, name, repo_url, default_branch, deployment_notes,
  local_path, context_notes
- build_logs, agent_evaluations, deliberation_rounds, decision_reports,
  revision_requests: append-only rows keyed by brief_id

``output_path`` holds newline-separated paths.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from forge.core.exceptions import BriefNotFoundError, StoreError
from forge.core.logging import get_logger
from forge.models import (
    Brief,
    BriefHistoryEntry,
    BriefStatus,
    BuildLogEntry,
    DecisionReport,
    DeliberationRound,
    EvaluationRecord,
    PipelineStage,
    Project,
    RevisionRequest,
    RevisionStatus,
)


logger = get_logger(__name__)

# Brief model field -> briefs column, where they differ
_BRIEF_COLUMNS: dict[str, str] = {
    "description": "brief",
    "branch": "branch_name",
    "output_paths": "output_path",
}
_BRIEF_FIELDS = {column: name for name, column in _BRIEF_COLUMNS.items()}


def _to_column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return "\n".join(str(v) for v in value) if value else None
    return value


def brief_from_row(row: dict[str, Any], project_row: dict[str, Any] | None = None) -> Brief:
    """Translate a briefs row (plus optional projects row) into a Brief."""
    data = {_BRIEF_FIELDS.get(k, k): v for k, v in row.items()}
    raw_paths = data.get("output_paths")
    data["output_paths"] = [p for p in (raw_paths or "").splitlines() if p.strip()]
    data["description"] = data.get("description") or ""
    if project_row:
        project = dict(project_row)
        project["deploy_notes"] = project.pop("deployment_notes", None)
        data["project"] = Project.model_validate(project)
    return Brief.model_validate(data)


def brief_update_to_row(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate Brief field updates into briefs column updates."""
    row = {_BRIEF_COLUMNS.get(k, k): _to_column_value(v) for k, v in fields.items()}
    row["updated_at"] = datetime.now(timezone.utc).isoformat()
    return row


class PostgrestStore:
    """StoreProtocol implementation over PostgREST.

    Example:
        ```python
        store = PostgrestStore("https://db.example.com/rest/v1", api_key="...")
        brief = await store.get_brief("b-1")
        await store.close()
        ```
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        """Release HTTP client resources."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StoreError(
                f"{operation} failed with HTTP {e.response.status_code}: {e.response.text[:500]}",
                operation=operation,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(f"{operation} failed: {e}", operation=operation, cause=e) from e
        if not response.content:
            return None
        return response.json()

    async def _insert(self, table: str, row: dict[str, Any], operation: str) -> None:
        await self._request("POST", f"/{table}", operation, json=row, headers={"Prefer": "return=minimal"})

    # -------------------------------------------------------------------------
    # Briefs
    # -------------------------------------------------------------------------

    async def get_brief(self, brief_id: str) -> Brief:
        rows = await self._request("GET", "/briefs", "get_brief", params={"id": f"eq.{brief_id}", "select": "*"})
        if not rows:
            raise BriefNotFoundError(brief_id)
        row = rows[0]
        project_row = None
        if row.get("project_id"):
            projects = await self._request(
                "GET",
                "/projects",
                "get_project",
                params={"id": f"eq.{row['project_id']}", "select": "*"},
            )
            project_row = projects[0] if projects else None
        return brief_from_row(row, project_row)

    async def update_brief(self, brief_id: str, **fields: Any) -> None:
        await self._request(
            "PATCH",
            "/briefs",
            "update_brief",
            params={"id": f"eq.{brief_id}"},
            json=brief_update_to_row(fields),
            headers={"Prefer": "return=minimal"},
        )

    async def list_briefs(
        self,
        status: BriefStatus | None = None,
        stage: PipelineStage | None = None,
    ) -> list[Brief]:
        params = {"select": "*", "order": "created_at.asc"}
        if status is not None:
            params["status"] = f"eq.{status.value}"
        if stage is not None:
            params["pipeline_stage"] = f"eq.{stage.value}"
        rows = await self._request("GET", "/briefs", "list_briefs", params=params)
        return [brief_from_row(row) for row in rows or []]

    async def fetch_brief_history(
        self,
        limit: int,
        exclude_id: str | None = None,
    ) -> list[BriefHistoryEntry]:
        if limit <= 0:
            return []
        params = {
            "select": "id,title,brief_type,status,outcome_tier,impact_score",
            "order": "created_at.desc",
            "limit": str(limit),
        }
        if exclude_id:
            params["id"] = f"neq.{exclude_id}"
        rows = await self._request("GET", "/briefs", "fetch_brief_history", params=params) or []
        if not rows:
            return []

        ids = ",".join(row["id"] for row in rows)
        reports = await self._request(
            "GET",
            "/decision_reports",
            "fetch_decision_reports",
            params={
                "select": "brief_id,decision,weighted_score,created_at",
                "brief_id": f"in.({ids})",
                "order": "created_at.desc",
            },
        ) or []
        latest: dict[str, dict[str, Any]] = {}
        for report in reports:
            latest.setdefault(report["brief_id"], report)

        return [
            BriefHistoryEntry(
                id=row["id"],
                title=row["title"],
                brief_type=row.get("brief_type") or "build",
                status=row["status"],
                outcome_tier=row.get("outcome_tier"),
                impact_score=row.get("impact_score"),
                decision=latest.get(row["id"], {}).get("decision"),
                weighted_score=latest.get(row["id"], {}).get("weighted_score"),
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Append-only writers
    # -------------------------------------------------------------------------

    async def append_log(self, entry: BuildLogEntry) -> None:
        row: dict[str, Any] = {
            "brief_id": entry.brief_id,
            "agent": entry.agent,
            "action": entry.action,
            "log_level": entry.level.value,
        }
        if entry.details:
            row["details"] = entry.details
        await self._insert("build_logs", row, "append_log")

    async def write_evaluation(self, record: EvaluationRecord) -> None:
        result = record.result
        suggestions = {
            k: v
            for k, v in {"suggested_tier": result.suggested_tier, "suggested_impact": result.suggested_impact}.items()
            if v is not None
        }
        await self._insert(
            "agent_evaluations",
            {
                "brief_id": record.brief_id,
                "agent_slug": record.agent,
                "evaluation_type": record.evaluation_type,
                "verdict": result.verdict.value,
                "reasoning": result.reasoning,
                "suggestions": suggestions or None,
                "confidence": result.confidence,
            },
            "write_evaluation",
        )

    async def write_deliberation_round(self, row: DeliberationRound) -> None:
        await self._insert(
            "deliberation_rounds",
            {
                "brief_id": row.brief_id,
                "agent_slug": row.agent,
                "round": row.round,
                "verdict": row.verdict.value,
                "reasoning": row.reasoning,
                "confidence": row.confidence,
                "revised_from": row.revised_from.value if row.revised_from else None,
            },
            "write_deliberation_round",
        )

    async def write_decision_report(self, report: DecisionReport) -> None:
        await self._insert(
            "decision_reports",
            {
                "brief_id": report.brief_id,
                "decision": report.decision.value,
                "summary": report.summary,
                "weighted_score": report.weighted_score,
                "dissenting_views": report.dissenting_views,
            },
            "write_decision_report",
        )

    # -------------------------------------------------------------------------
    # Revision intake
    # -------------------------------------------------------------------------

    async def enqueue_revision(self, brief_id: str, feedback: str) -> RevisionRequest:
        latest = await self._request(
            "GET",
            "/revision_requests",
            "latest_revision",
            params={
                "select": "revision_number",
                "brief_id": f"eq.{brief_id}",
                "order": "revision_number.desc",
                "limit": "1",
            },
        ) or []
        number = (latest[0]["revision_number"] if latest else 0) + 1
        rows = await self._request(
            "POST",
            "/revision_requests",
            "enqueue_revision",
            json={
                "brief_id": brief_id,
                "feedback": feedback,
                "revision_number": number,
                "status": RevisionStatus.PENDING.value,
            },
            headers={"Prefer": "return=representation"},
        )
        return RevisionRequest.model_validate(rows[0])

    async def next_pending_revision(self, brief_id: str) -> RevisionRequest | None:
        rows = await self._request(
            "GET",
            "/revision_requests",
            "next_pending_revision",
            params={
                "select": "*",
                "brief_id": f"eq.{brief_id}",
                "status": f"eq.{RevisionStatus.PENDING.value}",
                "order": "revision_number.asc",
                "limit": "1",
            },
        )
        return RevisionRequest.model_validate(rows[0]) if rows else None

    async def list_pending_revision_briefs(self) -> list[str]:
        rows = await self._request(
            "GET",
            "/revision_requests",
            "list_pending_revision_briefs",
            params={
                "select": "brief_id",
                "status": f"eq.{RevisionStatus.PENDING.value}",
                "order": "created_at.asc",
            },
        ) or []
        return list(dict.fromkeys(row["brief_id"] for row in rows))

    async def update_revision_status(self, revision_id: str, status: RevisionStatus) -> None:
        await self._request(
            "PATCH",
            "/revision_requests",
            "update_revision_status",
            params={"id": f"eq.{revision_id}"},
            json={"status": status.value},
            headers={"Prefer": "return=minimal"},
        )
