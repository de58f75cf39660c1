"""
End-to-end tests for AgenticFixer.request_fix: cache, fast path and
agent fallback, with a scripted provider and a temporary project.
"""

import json

import pytest

from agent.fixer import AgenticFixer
from agent.models import FailureCategory, FailureSignature
from config import AgentConfig
from llm.client import ReasoningClient
from llm.errors import ProviderError
from llm.providers.mock_provider import MockProvider
from llm.retry import RetryPolicy

WHATWG_FAILURE = FailureSignature(
    message="TypeError: Cannot convert undefined or null to object",
    category=FailureCategory.DEPENDENCY,
    raw_output="    at Object.<anonymous> (node_modules/whatwg-url/lib/URL.js:14:8)",
)

TEMPLATE_FAILURE = FailureSignature(
    message="NG8001: 'app-foo' is not a known element",
    category=FailureCategory.TEMPLATE,
    file="src/app.component.ts",
    line=1,
)

PROPOSAL = "TOOL_CALL: proposeChanges(" + json.dumps(
    {
        "changes": [
            {
                "file": "src/app.component.ts",
                "type": "modify",
                "search": "export class AppComponent {}",
                "replace": "export class AppComponent { standalone = true; }",
            }
        ],
        "explanation": "Declare the component standalone",
        "confidence": 0.75,
    }
) + ")"


async def _no_sleep(_delay):
    return None


def make_fixer(project, *responses, **config):
    provider = MockProvider(responses)
    client = ReasoningClient(provider=provider, retry_policy=RetryPolicy(max_retries=1, sleep=_no_sleep))
    return AgenticFixer(project, client=client, config=AgentConfig(**config)), provider


@pytest.mark.asyncio
async def test_known_failure_is_fixed_without_the_provider(project):
    fixer, provider = make_fixer(project)
    result = await fixer.request_fix(WHATWG_FAILURE)

    assert result.success is True
    assert result.confidence == 0.95
    assert provider.call_count == 0
    assert [c.file for c in result.changes] == ["src/main.ts", "src/util.js", "package.json"]
    assert "whatwg-url" not in json.loads(result.changes[-1].content)["dependencies"]
    assert "npm install" in result.suggestion


@pytest.mark.asyncio
async def test_high_threshold_sends_known_failure_to_the_agent(project):
    fixer, provider = make_fixer(project, fast_track_threshold=0.99, max_iterations=1)
    result = await fixer.request_fix(WHATWG_FAILURE)
    assert provider.call_count == 1
    assert result.success is False


@pytest.mark.asyncio
async def test_agent_fallback_with_proposal(project):
    fixer, provider = make_fixer(project, PROPOSAL)
    result = await fixer.request_fix(TEMPLATE_FAILURE, project_context="Angular 18 app")

    assert result.success is True
    assert provider.call_count == 1
    assert result.confidence == 0.75
    assert result.reasoning == "Declare the component standalone"
    assert result.changes[0].search_replace[0].replace == "export class AppComponent { standalone = true; }"
    assert "Angular 18 app" in provider.requests[0].user_prompt
    # proposals are never applied to disk
    assert (project / "src" / "app.component.ts").read_text() == "export class AppComponent {}\n"


@pytest.mark.asyncio
async def test_cached_result_skips_all_work(project):
    fixer, provider = make_fixer(project, PROPOSAL)
    first = await fixer.request_fix(TEMPLATE_FAILURE, build_output="ERROR in src/app.component.ts")
    second = await fixer.request_fix(TEMPLATE_FAILURE, build_output="ERROR in src/app.component.ts")

    assert provider.call_count == 1
    assert second == first


@pytest.mark.asyncio
async def test_use_cache_false_bypasses_the_cache(project):
    fixer, provider = make_fixer(project, PROPOSAL, PROPOSAL)
    await fixer.request_fix(TEMPLATE_FAILURE)
    await fixer.request_fix(TEMPLATE_FAILURE, use_cache=False)
    assert provider.call_count == 2


@pytest.mark.asyncio
async def test_failed_runs_are_not_cached(project):
    fixer, provider = make_fixer(project, max_iterations=1)
    result = await fixer.request_fix(TEMPLATE_FAILURE)

    assert result.success is False
    assert result.requires_manual_intervention is True
    assert "Review the investigation results for clues" in result.suggestion
    assert fixer.cache.stats()["entries"] == 0


@pytest.mark.asyncio
async def test_provider_failure_requires_manual_intervention(project):
    fixer, provider = make_fixer(project, ProviderError("unauthorized", status_code=401))
    result = await fixer.request_fix(TEMPLATE_FAILURE)

    assert result.success is False
    assert result.requires_manual_intervention is True
    assert result.error == "unauthorized"
    assert result.suggestion == "An error occurred during agent execution. Please check the logs."
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_unexpected_provider_exception_is_reported_not_raised(project, caplog):
    fixer, provider = make_fixer(project, RuntimeError("backend exploded"))
    with caplog.at_level("ERROR", logger="agent.fixer"):
        result = await fixer.request_fix(TEMPLATE_FAILURE, use_cache=False)

    assert result.success is False
    assert result.requires_manual_intervention is True
    assert result.error == "backend exploded"
    assert provider.call_count == 1
    assert any(record.exc_info for record in caplog.records)


@pytest.mark.asyncio
async def test_exhausted_retries_are_reported_not_raised(project):
    overloaded = [ProviderError("overloaded", status_code=503) for _ in range(3)]
    fixer, provider = make_fixer(project, *overloaded)
    result = await fixer.request_fix(TEMPLATE_FAILURE)
    assert result.success is False
    assert provider.call_count == 2


@pytest.mark.asyncio
async def test_scan_for_environment_issues(project):
    fixer, _ = make_fixer(project)
    issues = await fixer.scan_for_environment_issues()
    assert len(issues) == 1
    assert issues[0].package == "whatwg-url"
    assert issues[0].files == ["src/main.ts", "src/util.js"]
    assert "Browser native URL" in issues[0].suggestion


@pytest.mark.asyncio
async def test_scan_without_manifest(tmp_path):
    fixer, _ = make_fixer(tmp_path)
    assert await fixer.scan_for_environment_issues() == []


@pytest.mark.asyncio
async def test_check_compatibility(project):
    fixer, _ = make_fixer(project)
    report = await fixer.check_compatibility("whatwg-url")
    assert report.compatible is False
    assert report.alternative == "Browser native URL and URLSearchParams APIs"

    other = await fixer.check_compatibility("@angular/core")
    assert other.compatible is True


@pytest.mark.asyncio
async def test_analyze_runtime_error(project):
    fixer, _ = make_fixer(project)
    diagnosis = await fixer.analyze_runtime_error(
        "Cannot convert undefined or null to object",
        "at node_modules/whatwg-url/lib/URL.js:14:8",
    )
    assert diagnosis.confidence == 0.9
    assert diagnosis.problematic_packages == ["whatwg-url"]


@pytest.mark.asyncio
async def test_low_confidence_diagnosis_falls_through_to_the_agent(project):
    fixer, provider = make_fixer(project, PROPOSAL)
    failure = FailureSignature(message="TypeError: this.store.select(...).pipe is not a function")
    result = await fixer.request_fix(failure)
    assert provider.call_count == 1
    assert result.success is True
