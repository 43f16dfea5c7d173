import textwrap

import pytest

from job_feed.config import Config, Settings
from job_feed.config.settings import DEFAULT_COMING_SOON, JOB_SEARCH_FEATURE
from job_feed.schema import FetchParams

CONFIG_YAML = textwrap.dedent("""
    filters:
      location: Cape Town
      date_filter: week
      limit: 50
      has_contact: false
    features:
      userFeatures:
        jobSearch:
          enabled: false
          message: Job search is almost here
        jobAlerts:
          enabled: true
      availableFeatures:
        userProfile:
          enabled: true
      adminFeatures:
        analytics:
          enabled: true
""")


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


# ── Loading ───────────────────────────────────────────────────────────────────

def test_load_config(config_file):
    config = Settings(config_file=config_file).load_config()
    assert config.filters == FetchParams(location="Cape Town", date_filter="week", limit=50, has_contact=False)


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings(config_file=tmp_path / "absent.yaml").load_config()


def test_empty_config_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    config = Settings(config_file=path).load_config()
    assert config.filters == FetchParams()
    assert config.can_user_access_feature(JOB_SEARCH_FEATURE)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("JOB_FEED_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("JOB_FEED_API_URL", "https://jobs.example.org/api")
    settings = Settings()
    assert settings.poll_interval == 2.5
    assert settings.api_url == "https://jobs.example.org/api"
    assert settings.default_scrape_query == "jobs South Africa"


# ── Feature gate ──────────────────────────────────────────────────────────────

def test_feature_access(config_file):
    config = Settings(config_file=config_file).load_config()
    assert not config.can_user_access_feature(JOB_SEARCH_FEATURE)
    assert config.can_user_access_feature("userFeatures.jobAlerts")
    assert config.can_user_access_feature("availableFeatures.userProfile")


def test_admin_features_are_never_user_accessible(config_file):
    config = Settings(config_file=config_file).load_config()
    assert config.is_feature_enabled("adminFeatures.analytics")
    assert not config.can_user_access_feature("adminFeatures.analytics")


@pytest.mark.parametrize("path", ["userFeatures.unknown", "userFeatures", "userFeatures.jobAlerts.enabled", ""])
def test_unknown_features_are_disabled(config_file, path):
    config = Settings(config_file=config_file).load_config()
    assert not config.can_user_access_feature(path)


def test_coming_soon_message(config_file):
    config = Settings(config_file=config_file).load_config()
    assert config.coming_soon_message(JOB_SEARCH_FEATURE) == "Job search is almost here"
    assert config.coming_soon_message("userFeatures.jobAlerts") == DEFAULT_COMING_SOON
    assert config.coming_soon_message("nowhere.at.all") == DEFAULT_COMING_SOON


def test_default_features_are_not_shared():
    first = Config()
    first.features["userFeatures"]["jobSearch"]["enabled"] = False
    assert Config().can_user_access_feature(JOB_SEARCH_FEATURE)


# ── Fetch params ──────────────────────────────────────────────────────────────

def test_query_params_use_backend_names():
    params = FetchParams(search="welder", has_contact=False, job_type="contract")
    assert params.query_params == {
        "search": "welder",
        "location": "",
        "dateFilter": "yesterday",
        "limit": "20",
        "offset": "0",
        "hasContact": "false",
        "jobType": "contract",
    }
