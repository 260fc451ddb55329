"""Tests for docstore configuration loading."""

import json

import pytest
from ninja_docstore.config import DocStoreConfig
from pydantic import ValidationError


def test_defaults():
    cfg = DocStoreConfig()
    assert cfg.cache_enabled is False
    assert cfg.default_limit == 50
    assert cfg.collation_locale == "en"
    assert cfg.connection_profile == "default"
    assert cfg.cache_profile is None


def test_from_missing_file_gives_defaults(tmp_path):
    assert DocStoreConfig.from_file(tmp_path / "missing.json") == DocStoreConfig()


def test_from_file(tmp_path):
    path = tmp_path / "docstore.json"
    path.write_text(json.dumps({"cache_enabled": True, "default_limit": 20, "cache_profile": "cache"}))
    cfg = DocStoreConfig.from_file(path)
    assert cfg.cache_enabled is True
    assert cfg.default_limit == 20
    assert cfg.cache_profile == "cache"


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        DocStoreConfig.model_validate({"cache": "true"})


def test_default_limit_must_be_positive():
    with pytest.raises(ValidationError):
        DocStoreConfig(default_limit=0)
