import logging
import importlib

import pytest

from velib_exporter.core.errors import ConfigError

settings_mod = importlib.import_module("velib_exporter.config.settings")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove variáveis VELIB_* e aponta o .env para um ficheiro inexistente."""
    for var in settings_mod.ENV_MAP.values():
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("VELIB_ENV_FILE", str(tmp_path / "missing.env"))
    return tmp_path


def test_load_settings_defaults(clean_env):
    """Sem .env nem ambiente, valem os padrões."""
    cfg = settings_mod.load_settings()
    assert cfg["token"] is None
    assert cfg["address"] == "127.0.0.1"
    assert cfg["port"] == 5050
    assert cfg["stats_interval_min"] == 30.0
    assert cfg["rides_interval_min"] == 60.0
    assert cfg["timeout"] == 30.0


def test_load_settings_env_file_and_override(clean_env, monkeypatch):
    """O ambiente do processo sobrescreve o ficheiro .env."""
    env_file = clean_env / ".env"
    env_file.write_text(
        "# comentário\nVELIB_TOKEN='from-file'\nexport VELIB_EXPORTER_PORT=9100\nVELIB_DEBUG=true\nlinha-invalida\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("VELIB_ENV_FILE", str(env_file))
    monkeypatch.setenv("VELIB_EXPORTER_PORT", "9200")

    cfg = settings_mod.load_settings()
    assert cfg["token"] == "from-file"
    assert cfg["port"] == 9200
    assert cfg["debug"] is True


def test_load_settings_invalid_number_keeps_default(clean_env, monkeypatch, caplog):
    """Valor numérico inválido gera warning e mantém o padrão."""
    caplog.set_level(logging.WARNING)
    monkeypatch.setenv("VELIB_RIDES_PAGE_SIZE", "vinte")
    cfg = settings_mod.load_settings()
    assert cfg["page_size"] == 20
    assert any("VELIB_RIDES_PAGE_SIZE" in r.getMessage() for r in caplog.records)


def test_validate_settings_requires_token():
    cfg = dict(settings_mod.DEFAULT_SETTINGS)
    with pytest.raises(ConfigError):
        settings_mod.validate_settings(cfg)
    cfg["token"] = "   "
    with pytest.raises(ConfigError):
        settings_mod.validate_settings(cfg)


@pytest.mark.parametrize(
    "key,value",
    [("port", 0), ("port", 70000), ("page_size", 0), ("stats_interval_min", -1), ("timeout", "x")],
)
def test_validate_settings_rejects_bad_values(key, value):
    cfg = dict(settings_mod.DEFAULT_SETTINGS, token="t")
    cfg[key] = value
    with pytest.raises(ConfigError):
        settings_mod.validate_settings(cfg)


def test_validate_settings_normalizes_types():
    cfg = dict(settings_mod.DEFAULT_SETTINGS, token=" t ", port="8080", timeout="12")
    out = settings_mod.validate_settings(cfg)
    assert out["token"] == "t"
    assert out["port"] == 8080
    assert out["timeout"] == 12.0


def test_validate_settings_type_error():
    with pytest.raises(TypeError):
        settings_mod.validate_settings("nope")
