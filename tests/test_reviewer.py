import json

from appforge.core.exceptions import ProviderError
from appforge.models.schemas.generation import CodeIssue, GeneratedFile, ReviewResult
from appforge.services.generation.reviewer import (
    FALLBACK_SUMMARY,
    CodeReviewer,
    format_review,
    normalize_review,
    score_issues,
)

from tests.fakes import FakeLLM

FILES = [GeneratedFile(path="src/App.tsx", content="export default () => null", language="typescript")]


def test_score_from_issue_penalties():
    issues = [CodeIssue(severity="critical"), CodeIssue(severity="error"), CodeIssue(severity="warning"),
              CodeIssue(severity="info")]

    assert score_issues(issues) == 64
    assert score_issues([CodeIssue(severity="critical")] * 6) == 0


def test_normalize_computes_missing_score():
    result = normalize_review({"issues": [{"severity": "critical", "message": "XSS"}] * 3})

    assert result.score == 40
    assert not result.passed
    assert result.summary == "Review completed"


def test_normalize_clamps_and_defaults():
    assert normalize_review({"score": 140}).score == 100
    assert normalize_review({"score": -5}).score == 0
    assert normalize_review({}).score == 70
    assert normalize_review({}).passed


def test_normalize_respects_explicit_passed():
    assert normalize_review({"score": 10, "passed": True}).passed


def test_normalize_drops_malformed_issues():
    result = normalize_review({
        "score": 90,
        "issues": [
            "not an issue",
            {"file": "a.ts", "line": True, "severity": "fatal", "category": "vibes", "message": 42},
        ],
    })

    assert len(result.issues) == 1
    issue = result.issues[0]
    assert (issue.file, issue.line, issue.severity, issue.category, issue.message) == (
        "a.ts", None, "info", "best-practice", "42",
    )


async def test_review_parses_model_output(settings):
    reply = json.dumps({
        "passed": True,
        "score": 88,
        "issues": [{"file": "src/App.tsx", "line": 1, "severity": "warning", "category": "style", "message": "m"}],
        "summary": "Looks good",
        "improvements": ["Add tests"],
    })
    llm = FakeLLM(replies=[reply])
    reviewer = CodeReviewer(llm, settings)

    result = await reviewer.review(FILES, "webapp")

    assert result.score == 88
    assert result.issues[0].line == 1
    assert llm.calls[0].model == settings.reviewer_model
    assert "--- FILE: src/App.tsx (typescript) ---" in llm.calls[0].messages[1].content
    assert reviewer.stats["passed"] == 1


async def test_review_file_reviews_a_single_file(settings):
    llm = FakeLLM(replies=[json.dumps({"score": 95, "issues": [], "summary": "Fine"})])

    result = await CodeReviewer(llm, settings).review_file(FILES[0], "webapp")

    assert result.score == 95
    assert result.passed
    assert len(llm.calls) == 1


async def test_empty_batch_skips_the_model(settings):
    llm = FakeLLM()

    result = await CodeReviewer(llm, settings).review([], "webapp")

    assert (result.passed, result.score, result.summary) == (True, 100, "No files to review")
    assert llm.calls == []


async def test_provider_failure_degrades_to_fallback(settings):
    reviewer = CodeReviewer(FakeLLM(replies=[ProviderError("down", status_code=503)]), settings)

    result = await reviewer.review(FILES, "webapp")

    assert result.passed
    assert result.score == 70
    assert result.summary == FALLBACK_SUMMARY
    assert result.improvements == ["Manual code review recommended"]
    assert reviewer.stats["degraded"] == 1


async def test_unparseable_review_degrades(settings):
    result = await CodeReviewer(FakeLLM(replies=["no json"]), settings).review(FILES, "webapp")

    assert result.summary == FALLBACK_SUMMARY


async def test_quick_and_security_checks(settings):
    reply = json.dumps({
        "score": 50,
        "issues": [
            {"severity": "critical", "category": "security", "message": "Hardcoded key"},
            {"severity": "warning", "category": "security", "message": "Weak CSP"},
        ],
    })
    reviewer = CodeReviewer(FakeLLM(replies=[reply, reply]), settings)

    quick = await reviewer.quick_check(FILES, "webapp")
    security = await reviewer.security_check(FILES, "webapp")

    assert quick == {"has_issues": True, "critical_count": 1, "summary": "Review completed"}
    assert not security["secure"]
    assert [v.message for v in security["vulnerabilities"]] == ["Hardcoded key"]


def test_format_review():
    result = ReviewResult(
        passed=False,
        score=45,
        issues=[CodeIssue(file="a.ts", line=3, severity="error", category="bug", message="Off by one",
                          suggestion="Use <=")],
        summary="Needs work",
        improvements=["Add tests"],
    )

    report = format_review(result)

    assert report.startswith("❌ Code Review: NEEDS ATTENTION")
    assert "Score: 45/100" in report
    assert "  - [bug] a.ts:3: Off by one" in report
    assert "    💡 Use <=" in report
    assert "  - Add tests" in report
