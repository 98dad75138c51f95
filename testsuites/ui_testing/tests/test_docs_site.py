"""
================================================================================
playwright.dev Docs Site UI Tests (Async / live browser)
================================================================================

Runs the docs-site suite bodies against the real https://playwright.dev,
one pytest test per case, plus one pass of the whole suite through the
FixtureRunner.

Opt-in: PAGETEST_LIVE=1 (needs `playwright install chromium` and network).

================================================================================
"""

import allure
import pytest

from pagetest import FixtureRunner, PageController, PageTestConfig
from testsuites.ui_testing import docs_site


pytestmark = [pytest.mark.e2e, pytest.mark.asyncio(loop_scope="session")]


@allure.epic("UI Testing")
@allure.feature("Homepage")
class TestHomepage:
    """Landing page checks."""

    @allure.story("Title and Get Started")
    @allure.title("Homepage has Playwright in title and Get Started links to the intro page")
    @allure.severity(allure.severity_level.BLOCKER)
    @pytest.mark.P0
    @pytest.mark.smoke
    async def test_get_started_links_to_intro(self, page: PageController):
        await docs_site.homepage_get_started(page)

    @allure.story("Navigation")
    @allure.title("Navigation menu is visible")
    @allure.severity(allure.severity_level.CRITICAL)
    @pytest.mark.P0
    @pytest.mark.smoke
    async def test_navigation_menu_visible(self, page: PageController):
        await docs_site.navigation_menu(page)

    @allure.story("Search")
    @allure.title("Search functionality works")
    @allure.severity(allure.severity_level.NORMAL)
    @pytest.mark.P1
    async def test_search(self, page: PageController):
        await docs_site.search_functionality(page)

    @allure.story("Content")
    @allure.title("Code example is displayed")
    @allure.severity(allure.severity_level.MINOR)
    @pytest.mark.P2
    async def test_code_example(self, page: PageController):
        await docs_site.code_example(page)

    @allure.story("Footer")
    @allure.title("Footer contains links")
    @allure.severity(allure.severity_level.MINOR)
    @pytest.mark.P2
    async def test_footer_links(self, page: PageController):
        await docs_site.footer_links(page)

    @allure.story("Theme")
    @allure.title("Dark mode toggle exists")
    @allure.severity(allure.severity_level.TRIVIAL)
    @pytest.mark.P3
    async def test_dark_mode_toggle(self, page: PageController):
        await docs_site.dark_mode_toggle(page)


@allure.epic("UI Testing")
@allure.feature("Docs")
class TestDocs:
    """Documentation page checks."""

    @allure.story("Intro page")
    @allure.title("Docs page loads correctly")
    @allure.severity(allure.severity_level.CRITICAL)
    @pytest.mark.P0
    async def test_docs_page_loads(self, page: PageController):
        await docs_site.docs_page(page)

    @allure.story("Language tabs")
    @allure.title("Language tabs work")
    @allure.severity(allure.severity_level.MINOR)
    @pytest.mark.P2
    async def test_language_tabs(self, page: PageController):
        await docs_site.language_tabs(page)


@allure.epic("UI Testing")
@allure.feature("Fixture Runner")
@allure.title("Whole docs-site suite passes through the FixtureRunner")
@pytest.mark.regression
async def test_suite_through_fixture_runner(pagetest_config: PageTestConfig):
    results = await FixtureRunner(pagetest_config).run(docs_site.suite)

    failures = [f"{r.name}: {r.message}" for r in results if not r.passed]
    assert not failures, "\n".join(failures)
