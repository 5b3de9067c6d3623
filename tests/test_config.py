import pytest

from practicehub import openai_client
from practicehub.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_practice_and_ai_settings_from_env(monkeypatch):
    monkeypatch.setenv('PRACTICE_ADDRESS', '1 Main Street')
    monkeypatch.setenv('AI_MODEL', 'gpt-4o-mini')
    monkeypatch.setenv('AI_TEMPERATURE', '0.5')
    monkeypatch.setenv('ALLOWED_ORIGINS', 'https://a.example, https://b.example')
    settings = get_settings()
    assert settings.practice.name == 'Harbourview Counselling'
    assert settings.practice.address == '1 Main Street'
    assert settings.ai_model == 'gpt-4o-mini'
    assert settings.ai_temperature == 0.5
    assert settings.allowed_origins == ['https://a.example', 'https://b.example']
    assert settings.allow_all_origins is False


def test_jwt_secret_required_outside_development(monkeypatch):
    monkeypatch.setenv('ENVIRONMENT', 'production')
    monkeypatch.delenv('JWT_SECRET', raising=False)
    with pytest.raises(RuntimeError):
        get_settings()


def test_invalid_numbers_are_rejected(monkeypatch):
    monkeypatch.setenv('ACCESS_TOKEN_MINUTES', 'an hour')
    with pytest.raises(ValueError):
        get_settings()


def test_offline_mode_is_read_per_call(monkeypatch):
    get_settings()
    monkeypatch.delenv('USE_OFFLINE_MODEL', raising=False)
    assert openai_client._use_offline() is False
    monkeypatch.setenv('USE_OFFLINE_MODEL', 'yes')
    assert openai_client._use_offline() is True
