"""
Reviewer - advisory code review of generated files.

Review never blocks a generation: any provider or parsing failure degrades
to a default passing result that recommends a manual review.
"""
from typing import Any, Dict, List, Optional, Sequence

from appforge.config import Settings, settings as default_settings
from appforge.llm.base import ChatOptions, LLMMessage
from appforge.models.prompts import PromptLibrary, PromptType
from appforge.models.schemas.generation import CodeIssue, GeneratedFile, ReviewResult
from appforge.utils.json_extraction import extract_json
from appforge.utils.logging import get_logger, log_context, trace_async

logger = get_logger(__name__)

PASS_THRESHOLD = 60
DEFAULT_SCORE = 70

SEVERITY_PENALTIES = {
    "critical": 20,
    "error": 10,
    "warning": 5,
    "info": 1,
}

FALLBACK_SUMMARY = "Code review could not be completed. Manual review recommended."
FALLBACK_IMPROVEMENTS = ["Manual code review recommended"]


def score_issues(issues: Sequence[CodeIssue]) -> int:
    """Start at 100 and subtract a fixed penalty per issue severity, floor 0."""
    score = 100
    for issue in issues:
        score -= SEVERITY_PENALTIES.get(issue.severity, 0)
    return max(0, score)


def fallback_review() -> ReviewResult:
    return ReviewResult(
        passed=True,
        score=DEFAULT_SCORE,
        issues=[],
        summary=FALLBACK_SUMMARY,
        improvements=list(FALLBACK_IMPROVEMENTS),
    )


def _parse_issue(raw: Any) -> Optional[CodeIssue]:
    if not isinstance(raw, dict):
        return None
    data = {key: raw[key] for key in ("file", "severity", "category", "message", "suggestion") if raw.get(key)}
    line = raw.get("line")
    if isinstance(line, int) and not isinstance(line, bool):
        data["line"] = line
    if data.get("severity") not in SEVERITY_PENALTIES:
        data.pop("severity", None)
    if data.get("category") not in ("security", "performance", "accessibility", "best-practice", "bug", "style"):
        data.pop("category", None)
    for key in ("file", "message", "suggestion"):
        if key in data and not isinstance(data[key], str):
            data[key] = str(data[key])
    return CodeIssue(**data)


def normalize_review(parsed: Dict[str, Any]) -> ReviewResult:
    """
    Coerce raw model output into a ReviewResult.

    - issues: malformed entries dropped, missing fields defaulted
    - score: clamped to 0..100; computed from issues when absent
    - passed: ``score >= 60`` unless the model set it explicitly
    """
    raw_issues = parsed.get("issues")
    issues = [issue for issue in (_parse_issue(raw) for raw in (raw_issues or [])) if issue is not None] \
        if isinstance(raw_issues, list) else []

    raw_score = parsed.get("score")
    if isinstance(raw_score, (int, float)) and not isinstance(raw_score, bool):
        score = int(round(raw_score))
    elif isinstance(raw_issues, list):
        score = score_issues(issues)
    else:
        score = DEFAULT_SCORE
    score = max(0, min(100, score))

    passed = parsed.get("passed")
    if not isinstance(passed, bool):
        passed = score >= PASS_THRESHOLD

    summary = parsed.get("summary")
    improvements = parsed.get("improvements")
    return ReviewResult(
        passed=passed,
        score=score,
        issues=issues,
        summary=summary if isinstance(summary, str) and summary else "Review completed",
        improvements=[str(item) for item in improvements] if isinstance(improvements, list) else [],
    )


def format_files(files: Sequence[GeneratedFile]) -> str:
    return "\n\n".join(
        f"--- FILE: {file.path} ({file.language}) ---\n{file.content}\n--- END FILE ---"
        for file in files
    )


def format_review(result: ReviewResult) -> str:
    """Human-readable review report."""
    lines = [
        f"{'✅' if result.passed else '❌'} Code Review: {'PASSED' if result.passed else 'NEEDS ATTENTION'}",
        f"Score: {result.score}/100",
        "",
        f"Summary: {result.summary}",
    ]

    sections = (
        ("critical", "🚨 Critical Issues"),
        ("error", "❌ Errors"),
        ("warning", "⚠️ Warnings"),
        ("info", "ℹ️ Info"),
    )
    for severity, title in sections:
        matching = [issue for issue in result.issues if issue.severity == severity]
        if not matching:
            continue
        lines.extend(["", f"{title} ({len(matching)}):"])
        for issue in matching:
            location = f"{issue.file}:{issue.line}" if issue.line is not None else issue.file
            lines.append(f"  - [{issue.category}] {location}: {issue.message}")
            if issue.suggestion:
                lines.append(f"    💡 {issue.suggestion}")

    if result.improvements:
        lines.extend(["", "💡 Suggested Improvements:"])
        lines.extend(f"  - {item}" for item in result.improvements)

    return "\n".join(lines)


class CodeReviewer:
    """
    Advisory reviewer over a batch of generated files.

    Usage:
        reviewer = CodeReviewer(llm, settings)
        result = await reviewer.review(files, "webapp")
    """

    def __init__(self, llm, settings: Optional[Settings] = None, prompts: Optional[PromptLibrary] = None):
        self.llm = llm
        self.settings = settings or default_settings
        self.prompts = prompts or PromptLibrary()

        self.stats = {
            "total_reviews": 0,
            "passed": 0,
            "failed": 0,
            "degraded": 0,
        }

    def build_messages(self, files: Sequence[GeneratedFile], platform: str) -> List[LLMMessage]:
        system, user = self.prompts.get(PromptType.CODE_REVIEW).format(platform=platform, files=format_files(files))
        return [
            LLMMessage(role="system", content=system.strip()),
            LLMMessage(role="user", content=user.strip()),
        ]

    @trace_async("reviewer.review")
    async def review(self, files: Sequence[GeneratedFile], platform: str) -> ReviewResult:
        """Review a batch of files. Never raises."""
        self.stats["total_reviews"] += 1
        if not files:
            return ReviewResult(passed=True, score=100, summary="No files to review")

        options = ChatOptions(
            model=self.settings.model_for("reviewer"),
            messages=self.build_messages(files, platform),
            temperature=self.settings.review_temperature,
            max_tokens=self.settings.review_max_tokens,
            json_mode=True,
        )

        with log_context(operation="review", platform=platform):
            try:
                response = await self.llm.chat(options)
                result = normalize_review(extract_json(response.content))
            except Exception as e:
                self.stats["degraded"] += 1
                logger.warning("⚠️ reviewer.review.degraded", extra={"files": len(files)}, exc_info=e)
                return fallback_review()

            self.stats["passed" if result.passed else "failed"] += 1
            logger.info(
                "🔍 reviewer.review.completed",
                extra={"score": result.score, "passed": result.passed, "issues": len(result.issues)},
            )
            return result

    async def review_file(self, file: GeneratedFile, platform: str) -> ReviewResult:
        return await self.review([file], platform)

    async def quick_check(self, files: Sequence[GeneratedFile], platform: str) -> Dict[str, Any]:
        result = await self.review(files, platform)
        critical = [issue for issue in result.issues if issue.severity == "critical"]
        return {
            "has_issues": bool(critical) or not result.passed,
            "critical_count": len(critical),
            "summary": result.summary,
        }

    async def security_check(self, files: Sequence[GeneratedFile], platform: str) -> Dict[str, Any]:
        result = await self.review(files, platform)
        vulnerabilities = [
            issue for issue in result.issues
            if issue.category == "security" and issue.severity in ("critical", "error")
        ]
        return {"secure": not vulnerabilities, "vulnerabilities": vulnerabilities}

    def get_statistics(self) -> Dict[str, Any]:
        return dict(self.stats)
