from pathlib import Path

import roombook.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.delenv("ROOMBOOK_ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
    monkeypatch.delenv("ROOMBOOK_CORS_ORIGINS", raising=False)

    assert loader.get_pagination_settings() == {"default_limit": 10, "max_limit": 100}
    assert loader.get_reporting_settings()["utilization_window_days"] == 30
    assert loader.get_access_token_expire_minutes() == 24 * 60
    assert loader.get_cors_origins() == ["http://localhost:3000"]
    assert loader.get_audit_enabled() is True


def test_pagination_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "pagination:",
                "  default_limit: \"50\"",
                "  max_limit: 20",
                "reporting:",
                "  top_users_limit: \"abc\"",
                "  upcoming_window_days: 0",
                "  utilization_window_days: 14",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    # default_limit is capped by max_limit.
    assert loader.get_pagination_settings() == {"default_limit": 20, "max_limit": 20}
    reporting = loader.get_reporting_settings()
    assert reporting["top_users_limit"] == 10
    assert reporting["upcoming_window_days"] == 7
    assert reporting["utilization_window_days"] == 14


def test_identity_provider_env_overrides_file(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "identity_provider:",
                "  client_id: from-file",
                "  tenant: contoso",
                "  authority_url: https://login.example.com/",
                "  scopes: openid, User.Read",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.setenv("ROOMBOOK_IDP_CLIENT_ID", "from-env")
    monkeypatch.delenv("ROOMBOOK_IDP_TENANT", raising=False)
    monkeypatch.delenv("ROOMBOOK_IDP_AUTHORITY_URL", raising=False)

    settings = loader.get_identity_provider_settings()

    assert settings["client_id"] == "from-env"
    assert settings["tenant"] == "contoso"
    assert settings["authority_url"] == "https://login.example.com"
    assert settings["scopes"] == ["openid", "User.Read"]
    assert settings["timeout_seconds"] == 10


def test_non_mapping_config_is_ignored(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}


def test_audit_and_cors_settings(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "audit:\n  enabled: \"no\"\ncors:\n  allowed_origins: [\"https://rooms.example.com\"]\n",
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.setenv("ROOMBOOK_CORS_ORIGINS", "https://a.example.com, https://b.example.com")

    assert loader.get_audit_enabled() is False
    assert loader.get_cors_origins() == ["https://a.example.com", "https://b.example.com"]


def test_storage_settings(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "database_url: postgresql://rooms@db/rooms",
                "sqlite:",
                "  journal_mode: DELETE",
                "  write_retries: -2",
                "database_pool:",
                "  pool_size: 5",
                "  pool_recycle_seconds: nope",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("ROOMBOOK_DATABASE_URL", raising=False)

    assert loader.get_database_url() == "postgresql://rooms@db/rooms"
    sqlite = loader.get_sqlite_settings()
    assert sqlite["journal_mode"] == "DELETE"
    assert sqlite["synchronous"] == "NORMAL"
    assert sqlite["write_retries"] == 5
    assert loader.get_pool_settings() == {
        "pool_size": 5,
        "max_overflow": 40,
        "pool_timeout": 15,
        "pool_recycle": 1800,
    }

    monkeypatch.setenv("ROOMBOOK_DATABASE_URL", "sqlite:///./other.db")
    assert loader.get_database_url() == "sqlite:///./other.db"
