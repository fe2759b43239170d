from __future__ import annotations

import os
from pathlib import Path

import pytest

from ads_insights.credentials import ApiKeyStore, MissingApiKeyError

ENV = "ADS_TEST_VISION_KEY"


@pytest.fixture
def store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ApiKeyStore:
    monkeypatch.delenv(ENV, raising=False)
    return ApiKeyStore(tmp_path / "cfg" / "credentials.json", ENV)


def test_set_get_delete_roundtrip(store: ApiKeyStore) -> None:
    assert store.get() is None
    store.set("  abc  ")
    assert store.get() == "abc"
    assert store.path.stat().st_mode & 0o077 == 0
    assert store.delete() is True
    assert store.get() is None
    assert store.delete() is False


def test_environment_wins(store: ApiKeyStore, monkeypatch: pytest.MonkeyPatch) -> None:
    store.set("stored")
    monkeypatch.setenv(ENV, "from-env")
    assert store.get() == "from-env"


def test_ensure_prompts_and_persists(store: ApiKeyStore) -> None:
    asked = []

    def prompt(msg: str) -> str:
        asked.append(msg)
        return "typed-key"

    assert store.ensure(prompt) == "typed-key"
    assert store.ensure(prompt) == "typed-key"
    assert len(asked) == 1


@pytest.mark.parametrize("answer", [None, "", "   "])
def test_ensure_without_answer_is_fatal(store: ApiKeyStore, answer) -> None:
    with pytest.raises(MissingApiKeyError):
        store.ensure(lambda _msg: answer)
    with pytest.raises(MissingApiKeyError):
        store.ensure()


def test_key_file_is_owner_only_even_with_open_umask(store: ApiKeyStore) -> None:
    old = os.umask(0)
    try:
        store.set("first")
        assert store.path.stat().st_mode & 0o777 == 0o600
        store.path.chmod(0o644)
        store.set("second")
    finally:
        os.umask(old)
    assert store.path.stat().st_mode & 0o777 == 0o600
    assert store.get() == "second"
