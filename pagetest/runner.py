"""
================================================================================
Test Fixture Runner
================================================================================

Declares suites of async test bodies and runs each one against a fresh page.

Features:
    - @suite.test decorator with name, tags and per-test timeout
    - Fresh Context per test, or one shared Context with a fresh Page per test
    - One Session per run, or one per test
    - Bounded concurrency (runner.workers) when parallel_scope is 'fixtures'
    - Guaranteed page/context teardown, whatever the outcome
    - Screenshot + URL attached to Allure on failure
    - Results returned in declaration order

Usage:
    suite = TestSuite("docs site")

    @suite.test(tags=["smoke"])
    async def homepage_has_title(page):
        await page.goto("/")
        await expect(page).to_have_title(re.compile("Playwright"))

    results = await FixtureRunner(PageTestConfig.load()).run(suite)

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

import allure
from loguru import logger

from pagetest.common.settings import PageTestConfig
from pagetest.errors import (
    ElementNotFoundError,
    EvaluationError,
    ExpectationFailed,
    LaunchError,
    NavigationError,
    TestTimeoutError,
    format_value,
)
from pagetest.page import PageController
from pagetest.report import attach_png, attach_results, attach_text, format_summary
from pagetest.session import Context, Session, SessionManager


TestBody = Callable[[PageController], Awaitable[None]]

# Errors that mean "the page did not behave as the test expected".
FAILURE_TYPES: Tuple[type, ...] = (
    AssertionError,
    NavigationError,
    EvaluationError,
    ElementNotFoundError,
    TestTimeoutError,
)


class TestOutcome(str, Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TestResult:
    """Outcome of one test case."""

    __test__ = False

    name: str
    outcome: TestOutcome
    duration_ms: int = 0
    error_type: Optional[str] = None
    message: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome is TestOutcome.PASSED


@dataclass
class TestCase:
    __test__ = False

    name: str
    body: TestBody
    tags: Tuple[str, ...] = ()
    timeout_ms: Optional[int] = None


class TestSuite:
    """
    An ordered collection of test cases.

    Cases run in declaration order when sequential; results always come
    back in declaration order.
    """

    __test__ = False

    def __init__(self, name: str):
        self.name = name
        self.cases: List[TestCase] = []

    def __repr__(self) -> str:
        return f"<TestSuite {self.name!r} cases={len(self.cases)}>"

    def __len__(self) -> int:
        return len(self.cases)

    def test(
        self,
        body: Optional[TestBody] = None,
        *,
        name: Optional[str] = None,
        tags: Iterable[str] = (),
        timeout_ms: Optional[int] = None,
    ):
        """
        Register an async test body taking the page.

        Works bare (`@suite.test`) or with options
        (`@suite.test(name="...", tags=["smoke"], timeout_ms=10000)`).
        """

        def register(func: TestBody) -> TestBody:
            if not inspect.iscoroutinefunction(func):
                raise TypeError(f"Test body {func.__name__} must be an async function")
            case_name = name or func.__name__
            if any(case.name == case_name for case in self.cases):
                raise ValueError(f"Duplicate test name in suite {self.name!r}: {case_name}")
            self.cases.append(TestCase(case_name, func, tuple(tags), timeout_ms))
            return func

        if body is not None:
            return register(body)
        return register

    def select(self, tags: Optional[Iterable[str]] = None) -> List[TestCase]:
        """Cases carrying any of `tags` (all cases when no tags are given)."""
        wanted = set(tags or ())
        if not wanted:
            return list(self.cases)
        return [case for case in self.cases if wanted.intersection(case.tags)]


def classify(error: BaseException) -> TestOutcome:
    if isinstance(error, asyncio.CancelledError):
        return TestOutcome.CANCELLED
    if isinstance(error, FAILURE_TYPES):
        return TestOutcome.FAILED
    return TestOutcome.ERRORED


class FixtureRunner:
    """
    Runs a TestSuite and reports one TestResult per case.

    A failing test never stops its siblings. LaunchError is the one
    exception that escapes run(): without a browser nothing can run.
    """

    def __init__(
        self,
        config: Optional[PageTestConfig] = None,
        manager: Optional[SessionManager] = None,
    ):
        self.config = config or PageTestConfig.load()
        self.manager = manager or SessionManager()
        self.results: List[TestResult] = []
        self._aborted = False
        self._running: Set[asyncio.Task] = set()

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """
        Stop the run: running tests are cancelled, pending ones never start.

        Both are reported as cancelled.
        """
        if self._aborted:
            return
        self._aborted = True
        logger.warning(f"Run aborted, cancelling {len(self._running)} running test(s)")
        for task in list(self._running):
            task.cancel()

    async def run(
        self,
        suite: TestSuite,
        tags: Optional[Iterable[str]] = None,
    ) -> List[TestResult]:
        """
        Execute the suite.

        Args:
            suite: Suite to run
            tags: Only run cases carrying at least one of these tags

        Returns:
            One TestResult per selected case, in declaration order

        Raises:
            LaunchError: If a browser cannot be started
        """
        settings = self.config.runner
        tags = list(tags or ())
        cases = suite.select(tags)
        self._aborted = False
        self.results = []

        logger.info("=" * 60)
        logger.info(f"Running suite: {suite.name}")
        logger.info(f"Cases: {len(cases)} (tags: {', '.join(tags) if tags else 'All'})")
        logger.info(
            f"Isolation: {settings.isolation} | Session scope: {settings.session_scope} | "
            f"Parallel: {settings.parallel_scope} x{settings.workers}"
        )
        logger.info("=" * 60)

        if settings.session_scope == "run":
            async with await self.manager.launch(self.config) as session:
                if settings.isolation == "page":
                    async with await session.new_context() as shared:
                        results = await self._run_cases(cases, session, shared)
                else:
                    results = await self._run_cases(cases, session, None)
        else:
            results = await self._run_cases(cases, None, None)

        self.results = results
        self._log_summary(results)
        return results

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def _run_cases(
        self,
        cases: Sequence[TestCase],
        session: Optional[Session],
        shared: Optional[Context],
    ) -> List[TestResult]:
        settings = self.config.runner
        workers = settings.workers if settings.parallel_scope == "fixtures" else 1
        slots = asyncio.Semaphore(workers)

        async def scheduled(case: TestCase) -> TestResult:
            try:
                async with slots:
                    return await self._run_case(case, session, shared)
            except asyncio.CancelledError:
                if not self._aborted:
                    raise
                return TestResult(case.name, TestOutcome.CANCELLED, message="Run aborted")

        tasks = [asyncio.ensure_future(scheduled(case)) for case in cases]
        self._running.update(tasks)
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        finally:
            self._running.difference_update(tasks)

    async def _run_case(
        self,
        case: TestCase,
        session: Optional[Session],
        shared: Optional[Context],
    ) -> TestResult:
        if self._aborted:
            return TestResult(case.name, TestOutcome.CANCELLED, message="Run aborted before start")

        loop = asyncio.get_running_loop()
        started = loop.time()
        error: Optional[BaseException] = None
        logger.info(f"▶ {case.name}")

        with allure.step(f"Test: {case.name}"):
            try:
                if session is None:
                    async with await self.manager.launch(self.config) as own_session:
                        error = await self._run_with_page(case, own_session, None)
                else:
                    error = await self._run_with_page(case, session, shared)
            except asyncio.CancelledError as e:
                if not self._aborted:
                    raise
                error = e
            except LaunchError:
                raise
            except Exception as e:
                # Page or context acquisition failed before the body ran
                error = e

        duration_ms = int((loop.time() - started) * 1000)
        result = self._build_result(case, error, duration_ms)
        self._log_result(result)
        return result

    async def _run_with_page(
        self,
        case: TestCase,
        session: Session,
        shared: Optional[Context],
    ) -> Optional[BaseException]:
        async with self._acquire_page(session, shared) as page:
            error = await self._invoke(case, page)
            if error is not None and not isinstance(error, asyncio.CancelledError):
                if self.config.runner.screenshot_on_failure:
                    await self._attach_diagnostics(case, page)
            return error

    async def _invoke(self, case: TestCase, page: PageController) -> Optional[BaseException]:
        """Run the body under its timeout; return the error it raised, if any."""
        timeout_ms = self.config.timeouts.test_ms if case.timeout_ms is None else case.timeout_ms
        try:
            await asyncio.wait_for(case.body(page), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            return TestTimeoutError(
                f"Test {case.name} exceeded its {timeout_ms}ms timeout", timeout_ms=timeout_ms
            )
        except asyncio.CancelledError as e:
            if not self._aborted:
                raise
            return e
        except Exception as e:
            return e
        return None

    # =========================================================================
    # Resources
    # =========================================================================

    @asynccontextmanager
    async def _acquire_page(
        self,
        session: Session,
        shared: Optional[Context],
    ) -> AsyncIterator[PageController]:
        """Yield a fresh page; close it (and its own context) afterwards."""
        context = shared if shared is not None else await session.new_context()
        page: Optional[PageController] = None
        try:
            page = await context.new_page()
            yield page
        finally:
            if shared is None:
                await _release(context.close, f"context {context.context_id}")
            elif page is not None:
                await _release(page.close, f"page {page.page_id}")

    async def _attach_diagnostics(self, case: TestCase, page: PageController) -> None:
        try:
            url = await page.current_url()
            attach_text(url, name=f"{case.name} - URL")
            attach_png(await page.screenshot(full_page=True), name=f"{case.name} - screenshot")
        except Exception as e:
            logger.warning(f"Failed to capture diagnostics for {case.name}: {e}")

    # =========================================================================
    # Results
    # =========================================================================

    @staticmethod
    def _build_result(
        case: TestCase,
        error: Optional[BaseException],
        duration_ms: int,
    ) -> TestResult:
        if error is None:
            return TestResult(case.name, TestOutcome.PASSED, duration_ms)

        outcome = classify(error)
        expected = actual = None
        if isinstance(error, ExpectationFailed):
            expected = format_value(error.expected)
            actual = format_value(error.actual)

        message = str(error) or type(error).__name__
        if outcome is TestOutcome.CANCELLED:
            message = "Run aborted"
        return TestResult(
            name=case.name,
            outcome=outcome,
            duration_ms=duration_ms,
            error_type=type(error).__name__,
            message=message,
            expected=expected,
            actual=actual,
        )

    @staticmethod
    def _log_result(result: TestResult) -> None:
        if result.outcome is TestOutcome.PASSED:
            logger.info(f"✅ {result.name} ({result.duration_ms}ms)")
        elif result.outcome is TestOutcome.CANCELLED:
            logger.warning(f"⏹ {result.name} cancelled")
        else:
            logger.error(
                f"❌ {result.name} {result.outcome.value} ({result.duration_ms}ms): "
                f"{result.error_type}: {result.message}"
            )

    @staticmethod
    def _log_summary(results: List[TestResult]) -> None:
        logger.info("=" * 60)
        for line in format_summary(results).splitlines():
            logger.info(line)
        logger.info("=" * 60)
        attach_results(results)


async def _release(close: Callable[[], Awaitable[None]], label: str) -> None:
    try:
        await close()
    except Exception as e:
        logger.warning(f"Failed to close {label}: {e}")


__all__ = [
    "TestSuite",
    "TestCase",
    "TestResult",
    "TestOutcome",
    "FixtureRunner",
    "classify",
]
