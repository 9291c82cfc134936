"""Plain-text rendering of job records and salary estimates."""
from typing import Any, Dict, List

from consumer import EstimationState

PENDING = "..."


def format_location(location: Any) -> str:
    if not location:
        return ""
    if isinstance(location, str):
        return location
    if isinstance(location, dict):
        parts = [location.get(k) for k in ("city", "state", "country")]
        text = ", ".join(str(p) for p in parts if p)
        if location.get("remote"):
            text = f"{text} (remote)" if text else "Remote"
        elif location.get("hybrid"):
            text = f"{text} (hybrid)" if text else "Hybrid"
        return text
    return str(location)


def _as_items(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if v]
    if isinstance(value, dict):
        # Structured requirements: {"skills": [...], "experience": [...], ...}
        items: List[str] = []
        for key, entries in value.items():
            for entry in _as_items(entries):
                items.append(f"{key}: {entry}")
        return items
    return [str(value)]


def render_job(job: Dict[str, Any]) -> str:
    lines = [job.get("title") or "Job Title"]
    meta = [
        job.get("company") or "",
        format_location(job.get("location")),
        job.get("employmentType") or "",
        f"Posted: {job['postedDate']}" if job.get("postedDate") else "",
    ]
    meta = [m for m in meta if m]
    if meta:
        lines.append(" | ".join(meta))
    if job.get("description"):
        lines += ["", "Job Description", str(job["description"])]
    for heading, key in (("Requirements", "requirements"), ("Benefits", "benefits")):
        items = _as_items(job.get(key))
        if items:
            lines += ["", heading] + [f"  - {item}" for item in items]
    return "\n".join(lines)


def render_estimate(state: EstimationState) -> str:
    if state.error:
        return f"Error: {state.error}"
    estimate = state.estimate
    if estimate.is_empty:
        return "Estimating salary..." if not state.complete else "No estimate received."
    lines = [
        "Estimated Salary",
        estimate.salary_range if estimate.salary_range is not None else PENDING,
        f"Confidence Level: {estimate.confidence_level if estimate.confidence_level is not None else PENDING}",
    ]
    if estimate.reasoning is not None:
        lines += ["", "Salary Analysis", estimate.reasoning]
    if not state.complete:
        lines.append(PENDING)
    return "\n".join(lines)
