"""
AgenticFixer: the entry point the build-fix loop calls per failure.

request_fix() tries, in order:
  1. the response cache
  2. the fast path (deterministic diagnosis + fix, when confident enough)
  3. the full agent state machine

Only successful results are cached. Provider failures never escape:
they become a failed FixResult that asks for manual intervention.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from agent.graph import run_agent
from agent.models import Diagnosis, FailureSignature, FixResult
from config import AgentConfig
from diagnosis.fast_path import diagnose, find_package_usages, generate_fast_fix
from diagnosis.signatures import ALTERNATIVES, ENVIRONMENT_ONLY_PACKAGES
from llm.client import ReasoningClient
from llm.response_cache import ResponseCache
from llm.retry import RetryPolicy
from sandbox.executor import ToolContext, ToolExecutor
from sandbox.package_tools import declared_dependencies, read_manifest

logger = logging.getLogger(__name__)


@dataclass
class EnvironmentIssue:
    package: str
    files: list[str] = field(default_factory=list)
    suggestion: str = ""


@dataclass
class CompatibilityReport:
    compatible: bool
    reason: str
    alternative: str | None = None


class AgenticFixer:
    def __init__(
        self,
        project_root: str | Path,
        client: ReasoningClient | None = None,
        config: AgentConfig | None = None,
        cache: ResponseCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.config = config or AgentConfig()
        self._log = logger or logging.getLogger(__name__)
        self.client = client or ReasoningClient(
            retry_policy=RetryPolicy(
                max_retries=self.config.max_retries,
                base_delay=self.config.retry_base_delay,
                max_delay=self.config.retry_max_delay,
            ),
            logger=self._log,
        )
        self.cache = cache or ResponseCache(
            self.project_root,
            enabled=self.config.use_cache,
            max_age_seconds=self.config.cache_max_age_seconds,
            cache_dir_name=self.config.cache_dir_name,
            logger=self._log,
        )
        self.executor = ToolExecutor(
            ToolContext(
                project_root=self.project_root,
                max_file_size=self.config.max_file_size,
                command_timeout=self.config.command_timeout,
            ),
            logger=self._log,
        )

    async def request_fix(
        self,
        failure: FailureSignature,
        project_context: str = "",
        build_output: str = "",
        use_cache: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> FixResult:
        cache_context = build_output or failure.raw_output
        if use_cache:
            cached = self.cache.get(failure, cache_context)
            if cached is not None:
                return cached

        result = await self._fast_path(failure, build_output)
        if result is None:
            result = await self._run_agent(failure, project_context, build_output, cancel_event)

        if use_cache and result.success:
            self.cache.set(failure, cache_context, result)
        return result

    async def _fast_path(self, failure: FailureSignature, build_output: str) -> FixResult | None:
        diagnosis = diagnose(failure, build_output)
        if diagnosis is None or diagnosis.confidence < self.config.fast_track_threshold:
            return None

        self._log.info(
            "Quick diagnosis: %s (confidence %.2f)", diagnosis.issue_type, diagnosis.confidence
        )
        fix = await generate_fast_fix(diagnosis, self.executor)
        if fix is None:
            self._log.info("Fast path produced no changes, falling back to the agent")
        return fix

    async def _run_agent(
        self,
        failure: FailureSignature,
        project_context: str,
        build_output: str,
        cancel_event: asyncio.Event | None,
    ) -> FixResult:
        self._log.info("Starting agent for: %s", failure.message)
        try:
            state = await run_agent(
                failure,
                self.client,
                self.executor,
                project_context=project_context,
                build_output=build_output,
                target_version=self.config.target_version,
                max_iterations=self.config.max_iterations,
                max_token_budget=self.config.max_token_budget,
                cancel_event=cancel_event,
            )
        except Exception as exc:
            self._log.exception("Agent error: %s", exc)
            return FixResult(
                success=False,
                error=str(exc),
                requires_manual_intervention=True,
                reasoning="The reasoning provider failed before a fix was found.",
                suggestion="An error occurred during agent execution. Please check the logs.",
            )

        suggestion = "\n".join(state.suggestions_for_user)
        if state.success and state.applied_changes:
            return FixResult(
                success=True,
                changes=list(state.applied_changes),
                reasoning=state.reasoning,
                confidence=state.confidence,
                suggestion=suggestion,
            )
        return FixResult(
            success=False,
            reasoning=state.reasoning,
            requires_manual_intervention=True,
            suggestion=suggestion or "Agent could not determine a fix",
        )

    async def analyze_runtime_error(self, error_message: str, stack_trace: str = "") -> Diagnosis | None:
        result = await self.executor.execute(
            "analyzeRuntimeError", {"errorMessage": error_message, "stackTrace": stack_trace}
        )
        if not result.success:
            return None
        return Diagnosis(**result.metadata)

    async def check_compatibility(self, package_name: str) -> CompatibilityReport:
        result = await self.executor.execute(
            "checkPackage", {"packageName": package_name, "checkBrowserCompat": True}
        )
        if not result.success:
            return CompatibilityReport(compatible=False, reason=result.result)

        if package_name in ENVIRONMENT_ONLY_PACKAGES:
            alternative = ALTERNATIVES.get(package_name)
            return CompatibilityReport(
                compatible=False,
                reason=f"{package_name} is a server-only package",
                alternative=alternative.alternative if alternative else None,
            )
        return CompatibilityReport(
            compatible=not result.metadata["isEnvironmentOnly"],
            reason=result.metadata["recommendation"],
        )

    async def scan_for_environment_issues(self) -> list[EnvironmentIssue]:
        """Denylisted packages declared in the manifest and the files importing them."""
        manifest = await asyncio.to_thread(read_manifest, self.project_root)
        if manifest is None:
            return []

        issues = []
        for package in declared_dependencies(manifest):
            if package not in ENVIRONMENT_ONLY_PACKAGES:
                continue
            alternative = ALTERNATIVES.get(package)
            issues.append(
                EnvironmentIssue(
                    package=package,
                    files=await find_package_usages(self.executor, package),
                    suggestion=(
                        f"Remove {package}: {alternative.alternative}"
                        if alternative
                        else f"Remove {package} or find a browser-compatible alternative"
                    ),
                )
            )
        return issues
