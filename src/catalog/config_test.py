"""
Unit tests for Config.

Run with: pytest src/catalog/config_test.py -v
"""

import pytest

from catalog.config import DEFAULT_CHUNK_SIZE, Config


class TestFromEnv:
    """Tests for Config.from_env()"""

    def test_defaults(self, monkeypatch):
        for name in ("UPLOAD_MAX_BYTES", "REQUEST_MAX_BYTES", "BLOB_CHUNK_SIZE", "PORT", "CORS_ORIGINS"):
            monkeypatch.delenv(name, raising=False)

        result = Config.from_env()

        assert result.chunk_size == DEFAULT_CHUNK_SIZE == 255 * 1024
        assert result.upload_max_bytes == 10 * 1024 * 1024
        assert result.request_max_bytes == 20 * 1024 * 1024
        assert result.cors_origins == "*"
        assert result.port == 8080

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("UPLOAD_MAX_BYTES", "52428800")
        monkeypatch.setenv("BLOB_CHUNK_SIZE", "1024")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        result = Config.from_env()

        assert result.upload_max_bytes == 50 * 1024 * 1024
        assert result.chunk_size == 1024
        assert result.log_level == "DEBUG"

    def test_invalid_integer_raises(self, monkeypatch):
        monkeypatch.setenv("UPLOAD_MAX_BYTES", "ten megabytes")

        with pytest.raises(ValueError, match="UPLOAD_MAX_BYTES"):
            Config.from_env()

    @pytest.mark.parametrize("chunk_size", [0, -1])
    def test_non_positive_chunk_size_raises(self, chunk_size):
        with pytest.raises(ValueError, match="BLOB_CHUNK_SIZE"):
            Config(environment="test", database_url="postgresql://x/y", chunk_size=chunk_size)
