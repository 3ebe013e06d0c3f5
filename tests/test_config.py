from fooddash.config import Settings


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("FOODDASH_HOST", "0.0.0.0")
    monkeypatch.setenv("FOODDASH_PORT", "9000")
    monkeypatch.setenv("FOODDASH_ALLOW_ORIGINS", "https://shop.example.com, http://localhost:5173,")
    monkeypatch.setenv("FOODDASH_SEED_DEFAULTS", "false")

    settings = Settings(_env_file=None)

    assert settings.host == "0.0.0.0"
    assert settings.port == 9000
    assert settings.allow_origins == ["https://shop.example.com", "http://localhost:5173"]
    assert settings.seed_defaults is False


def test_settings_defaults(monkeypatch):
    for name in ("FOODDASH_HOST", "FOODDASH_PORT", "FOODDASH_CURRENCY"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.port == 8000
    assert settings.currency == "usd"
