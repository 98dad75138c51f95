#!/usr/bin/env python3
# ================================================================================
# Test Runner Script
# ================================================================================
#
# This is the main entry point for executing test suites.
#
# Features:
#   - Run the offline unit suite (pytest)
#   - Run the live UI tests (pytest, PAGETEST_LIVE=1)
#   - Run the playwright.dev docs suite directly through the FixtureRunner
#   - Generate Allure reports
#
# Usage:
#   python run_tests.py --suite unit
#   python run_tests.py --suite ui --browser firefox --no-headless
#   python run_tests.py --suite docs --tags P0 smoke --parallel 4
#
# ================================================================================

import argparse
import asyncio
import os
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import List

from loguru import logger

from pagetest import FixtureRunner, LaunchError, PageTestConfig, TestOutcome


# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    level="INFO"
)


class TestRunner:
    """
    Main test runner class for orchestrating test execution.

    This class handles:
    - Test suite selection and execution
    - Browser / parallelism configuration
    - Report generation
    """

    def __init__(
        self,
        suite: str = "unit",
        tags: List[str] = None,
        parallel: int = 1,
        browser: str = "chromium",
        headless: bool = True,
        allure_report: bool = True,
        verbose: bool = False
    ):
        """
        Initialize test runner.

        Args:
            suite: Test suite to run - "unit", "ui", "docs"
            tags: Markers (pytest) or suite tags (docs) to filter tests
            parallel: Concurrent tests for the docs suite
            browser: "chromium", "firefox", "webkit"
            headless: Run browser in headless mode
            allure_report: Generate Allure report
            verbose: Enable verbose output
        """
        self.suite = suite
        self.tags = tags or []
        self.parallel = parallel
        self.browser = browser
        self.headless = headless
        self.allure_report = allure_report
        self.verbose = verbose

        # Paths
        self.root_dir = Path(__file__).parent
        self.reports_dir = self.root_dir / "reports"
        self.allure_results = self.reports_dir / "allure-results"
        self.allure_report_dir = self.reports_dir / "allure-report"

    def run(self) -> int:
        """
        Execute the test run.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        logger.info("=" * 60)
        logger.info("Starting Test Execution")
        logger.info("=" * 60)
        logger.info(f"Suite: {self.suite}")
        logger.info(f"Tags: {self.tags or 'All'}")
        if self.suite in ["ui", "docs"]:
            logger.info(f"Browser: {self.browser}")
            logger.info(f"Headless: {self.headless}")
        if self.suite == "docs":
            logger.info(f"Parallel Workers: {self.parallel}")
        logger.info("=" * 60)

        self._prepare_environment()

        if self.suite == "docs":
            exit_code = self._run_docs_suite()
        else:
            cmd = self._build_pytest_command()
            logger.info(f"Executing: {' '.join(cmd)}")
            try:
                result = subprocess.run(cmd, cwd=str(self.root_dir))
                exit_code = result.returncode
            except OSError as e:
                logger.error(f"Test execution failed: {e}")
                exit_code = 1

        if self.allure_report and self.suite != "docs":
            self._generate_allure_report()

        self._print_summary(exit_code)
        return exit_code

    def _prepare_environment(self) -> None:
        """Prepare test environment."""
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.allure_results.mkdir(parents=True, exist_ok=True)

        os.environ["PAGETEST_BROWSER_ENGINE"] = self.browser
        os.environ["PAGETEST_BROWSER_HEADLESS"] = "true" if self.headless else "false"
        if self.suite == "ui":
            os.environ["PAGETEST_LIVE"] = "1"
        logger.debug("Environment prepared")

    def _build_pytest_command(self) -> List[str]:
        """Build the pytest command with all options."""
        cmd = [sys.executable, "-m", "pytest"]

        if self.suite == "unit":
            cmd.append("testsuites/unit")
        else:
            cmd.append("testsuites/ui_testing/tests")

        if self.tags:
            cmd.extend(["-m", " or ".join(self.tags)])

        if self.allure_report:
            cmd.extend(["--alluredir", str(self.allure_results)])

        cmd.append("-v" if self.verbose else "-q")
        return cmd

    def _run_docs_suite(self) -> int:
        """Run the docs-site suite through the FixtureRunner, without pytest."""
        from testsuites.ui_testing.docs_site import BASE_URL, suite

        config = PageTestConfig.load().with_overrides(
            base_url=BASE_URL,
            runner={
                "workers": self.parallel,
                "parallel_scope": "fixtures" if self.parallel > 1 else "none",
            },
        )
        try:
            results = asyncio.run(FixtureRunner(config).run(suite, tags=self.tags))
        except LaunchError as e:
            logger.error(f"Browser launch failed: {e}")
            return 2

        return 0 if all(result.outcome is TestOutcome.PASSED for result in results) else 1

    def _generate_allure_report(self) -> None:
        """Generate Allure HTML report."""
        logger.info("Generating Allure report...")

        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            report_path = self.reports_dir / f"allure-report-{timestamp}"

            subprocess.run([
                "allure", "generate",
                str(self.allure_results),
                "-o", str(report_path),
                "--clean"
            ], check=True)

            # Create/update latest symlink
            latest_link = self.allure_report_dir
            if latest_link.is_symlink():
                latest_link.unlink()
            elif latest_link.exists():
                shutil.rmtree(latest_link)

            latest_link.symlink_to(report_path.name)

            logger.info(f"Report generated: {report_path}")
            logger.info(f"Latest report: {self.allure_report_dir}")

        except FileNotFoundError:
            logger.warning("Allure CLI not found. Please install Allure to generate reports.")
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to generate Allure report: {e}")

    def _print_summary(self, exit_code: int) -> None:
        """Print test execution summary."""
        logger.info("=" * 60)
        if exit_code == 0:
            logger.info("✅ TEST EXECUTION COMPLETED SUCCESSFULLY")
        else:
            logger.error(f"❌ TEST EXECUTION FAILED (exit code: {exit_code})")

        if self.allure_report and self.suite != "docs":
            logger.info(f"📊 Report available at: {self.allure_report_dir}")

        logger.info("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="pagetest Test Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the offline unit suite
  python run_tests.py --suite unit

  # Run live UI tests with a visible browser
  python run_tests.py --suite ui --no-headless --browser firefox

  # Run the P0 docs checks, four at a time, without pytest
  python run_tests.py --suite docs --tags P0 --parallel 4
        """
    )

    parser.add_argument(
        "--suite",
        choices=["unit", "ui", "docs"],
        default="unit",
        help="Test suite to run (default: unit)"
    )

    parser.add_argument(
        "--tags",
        nargs="+",
        default=[],
        help="Markers / suite tags to filter tests (e.g., P0 smoke)"
    )

    parser.add_argument(
        "--parallel", "-n",
        type=int,
        default=1,
        help="Concurrent tests for the docs suite (default: 1)"
    )

    parser.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        default="chromium",
        help="Browser engine (default: chromium)"
    )

    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Run browser in headed mode (visible)"
    )

    parser.add_argument(
        "--no-allure",
        action="store_true",
        help="Disable Allure report generation"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args()

    runner = TestRunner(
        suite=args.suite,
        tags=args.tags,
        parallel=args.parallel,
        browser=args.browser,
        headless=not args.no_headless,
        allure_report=not args.no_allure,
        verbose=args.verbose
    )

    exit_code = runner.run()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
