import pytest
import yaml

from pagetest.common import ConfigLoader, PageTestConfig
from pagetest.errors import ConfigurationError


def test_env_override_and_defaults(tmp_path):
    config_path = tmp_path / "pagetest.yaml"
    config_path.write_text(
        yaml.dump({"base_url": "https://playwright.dev", "browser": {"engine": "firefox"}}),
        encoding="utf-8",
    )

    loader = ConfigLoader(config_path=config_path, environ={})
    assert loader.get("base_url") == "https://playwright.dev"
    assert loader.get("browser.engine") == "firefox"
    assert loader.get("browser.headless", True) is True

    loader = ConfigLoader(
        config_path=config_path,
        environ={"PAGETEST_BROWSER_ENGINE": "webkit", "PAGETEST_BROWSER_HEADLESS": "false"},
    )
    assert loader.get("browser.engine") == "webkit"
    assert loader.get("browser.headless", True) is False


def test_missing_file_uses_defaults(tmp_path):
    config = PageTestConfig.load(loader=ConfigLoader(tmp_path / "absent.yaml", environ={}))

    assert config.base_url == ""
    assert config.browser.engine == "chromium"
    assert config.timeouts.navigation_ms == 30000
    assert config.timeouts.expect_ms == 5000
    assert config.timeouts.poll_interval_ms == 100
    assert config.selectors.strict is True


def test_env_values_take_default_types(tmp_path):
    loader = ConfigLoader(
        tmp_path / "absent.yaml",
        environ={
            "PAGETEST_TIMEOUTS_EXPECT_MS": "2000",
            "PAGETEST_BROWSER_ARGS": "--mute-audio, --disable-gpu",
            "PAGETEST_RUNNER_WORKERS": "4",
            "PAGETEST_RUNNER_PARALLEL_SCOPE": "fixtures",
        },
    )
    config = PageTestConfig.load(loader=loader)

    assert config.timeouts.expect_ms == 2000
    assert config.browser.args == ("--mute-audio", "--disable-gpu")
    assert config.runner.workers == 4
    assert config.runner.parallel_scope == "fixtures"


def test_invalid_values_raise(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigLoader(tmp_path / "absent.yaml", environ={"PAGETEST_TIMEOUTS_EXPECT_MS": "soon"}).get(
            "timeouts.expect_ms", 5000
        )

    loader = ConfigLoader(tmp_path / "absent.yaml", environ={"PAGETEST_BROWSER_ENGINE": "netscape"})
    with pytest.raises(ConfigurationError, match="browser.engine"):
        PageTestConfig.load(loader=loader)


def test_invalid_yaml_raises(tmp_path):
    config_path = tmp_path / "pagetest.yaml"
    config_path.write_text("browser: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigLoader(config_path=config_path, environ={})


def test_reload_updates_values(tmp_path):
    config_path = tmp_path / "pagetest.yaml"
    config_path.write_text(yaml.dump({"timeouts": {"expect_ms": 1000}}), encoding="utf-8")

    loader = ConfigLoader(config_path=config_path, environ={})
    assert loader.get("timeouts.expect_ms") == 1000

    config_path.write_text(yaml.dump({"timeouts": {"expect_ms": 3000}}), encoding="utf-8")
    loader.reload()
    assert loader.get("timeouts.expect_ms") == 3000


def test_with_overrides_replaces_nested_fields():
    config = PageTestConfig().with_overrides(
        base_url="https://playwright.dev", timeouts={"expect_ms": 2000}
    )

    assert config.base_url == "https://playwright.dev"
    assert config.timeouts.expect_ms == 2000
    assert config.timeouts.navigation_ms == 30000
