from keyseed.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.max_concurrency is None
    assert settings.barrier_timeout is None
    assert settings.default_domain_id == "default"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("KEYSEED_MAX_CONCURRENCY", "4")
    monkeypatch.setenv("KEYSEED_IDENTITY_URL", "https://keystone.example.com/identity")

    settings = Settings(_env_file=None)

    assert settings.max_concurrency == 4
    assert settings.identity_url == "https://keystone.example.com/identity"


def test_logging_settings(monkeypatch):
    monkeypatch.setenv("KEYSEED_LOG_FORMAT", "console")

    settings = Settings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.log_format == "console"
