"""Tests for agent_context.config — Settings defaults, validation, and builders."""
from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from agent_context.config import ENV_PREFIX, Settings
from agent_context.content import ContentStore, HttpContentBackend, RetryPolicy, is_simulated_cid
from agent_context.content.backend import DEFAULT_GATEWAY_URL
from agent_context.stream import HttpNameBackend, InMemoryNameBackend, MutableStream


class TestSettingsDefaults:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.upload_url is None
        assert settings.gateway_url == DEFAULT_GATEWAY_URL
        assert settings.name_service_url is None
        assert settings.api_token is None
        assert settings.max_attempts == 3
        assert settings.base_delay == 0.5
        assert settings.simulate_on_failure is True

    def test_api_token_hidden_from_repr(self) -> None:
        assert "s3cret" not in repr(Settings(api_token="s3cret"))

    def test_retry_policy(self) -> None:
        assert Settings(max_attempts=5, base_delay=0.1).retry_policy() == RetryPolicy(5, 0.1)


class TestSettingsValidation:
    def test_trailing_slash_stripped(self) -> None:
        assert Settings(upload_url="https://ipfs.example/").upload_url == "https://ipfs.example"

    def test_rejects_bad_scheme(self) -> None:
        with pytest.raises(PydanticValidationError):
            Settings(upload_url="ftp://ipfs.example")

    def test_empty_gateway_uses_default(self) -> None:
        assert Settings(gateway_url="").gateway_url == DEFAULT_GATEWAY_URL

    def test_empty_upload_url_is_none(self) -> None:
        assert Settings(upload_url="").upload_url is None

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"base_delay": -1}, {"request_timeout": 0}],
    )
    def test_rejects_out_of_range(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(PydanticValidationError):
            Settings(**kwargs)


class TestFromEnv:
    def test_reads_prefixed_variables(self) -> None:
        env = {
            ENV_PREFIX + "UPLOAD_URL": "https://ipfs.example",
            ENV_PREFIX + "API_TOKEN": "tok",
            ENV_PREFIX + "MAX_ATTEMPTS": "5",
            ENV_PREFIX + "BASE_DELAY": "0.25",
            ENV_PREFIX + "SIMULATE_ON_FAILURE": "false",
        }
        settings = Settings.from_env(env)
        assert settings.upload_url == "https://ipfs.example"
        assert settings.api_token == "tok"
        assert settings.max_attempts == 5
        assert settings.base_delay == 0.25
        assert settings.simulate_on_failure is False

    def test_empty_environment_gives_defaults(self) -> None:
        assert Settings.from_env({}) == Settings()

    def test_ignores_empty_values(self) -> None:
        assert Settings.from_env({ENV_PREFIX + "MAX_ATTEMPTS": ""}).max_attempts == 3

    def test_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_PREFIX + "NAME_SERVICE_URL", "https://names.example")
        assert Settings.from_env().name_service_url == "https://names.example"

    def test_invalid_value_raises(self) -> None:
        with pytest.raises(PydanticValidationError):
            Settings.from_env({ENV_PREFIX + "MAX_ATTEMPTS": "many"})


class TestBuilders:
    def test_build_store(self) -> None:
        store = Settings(max_attempts=2).build_store()
        assert isinstance(store, ContentStore)
        assert isinstance(store._backend, HttpContentBackend)
        assert store.retry_policy.max_attempts == 2

    @pytest.mark.asyncio
    async def test_unconfigured_store_simulates_uploads(self) -> None:
        store = Settings().build_store()
        assert is_simulated_cid(await store.upload(b"hello", "hello.txt"))

    def test_build_streams_in_memory_by_default(self) -> None:
        streams = Settings().build_streams()
        assert isinstance(streams, MutableStream)
        assert isinstance(streams._backend, InMemoryNameBackend)

    def test_build_streams_http(self) -> None:
        streams = Settings(name_service_url="https://names.example").build_streams()
        assert isinstance(streams._backend, HttpNameBackend)
