from voicechat.config.settings import ClientSettings, Settings


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env-key")
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("OPENAI_REALTIME_VOICE", "echo")
    monkeypatch.setenv("UPSTREAM_TIMEOUT", "12.5")

    settings = Settings.from_env()

    assert settings.openai_api_key == "sk-env-key"
    assert settings.port == 9001
    assert settings.log_level == "DEBUG"
    assert settings.voice == "echo"
    assert settings.upstream_timeout == 12.5


def test_empty_key_is_unset(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "")
    assert Settings.from_env().openai_api_key is None


def test_client_settings_defaults(monkeypatch):
    monkeypatch.delenv("VOICECHAT_SERVER", raising=False)
    settings = ClientSettings.from_env()
    assert settings.server_url == "http://localhost:8000"
    assert settings.max_retries == 3
    assert settings.retry_delay == 2.0
    assert settings.auto_reconnect


def test_client_settings_server_from_env(monkeypatch):
    monkeypatch.setenv("VOICECHAT_SERVER", "http://voice.example:9000")
    assert ClientSettings.from_env().server_url == "http://voice.example:9000"
