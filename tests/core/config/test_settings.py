# tests/core/config/test_settings.py
"""
Testes dos Settings tipados do orquestrador.

Os testes asseguram que:
- os defaults empacotados declaram os executores `docker` e `shell`
- overrides locais são aplicados e refletidos no `config_hash`
- valores inválidos são rejeitados com `InvalidSettingError`
- diretórios relativos são resolvidos contra o diretório do projeto
"""

from pathlib import Path

import pytest

try:
    from stageflow.core.config.settings import ExecutorConfig, Settings, load_settings
    from stageflow.core.config.errors import ConfigError, InvalidSettingError
except Exception as e:  # noqa: BLE001
    Settings = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing settings module. Implement:\n"
            "- src/stageflow/core/config/settings.py (Settings, load_settings)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_packaged_defaults_declare_docker_and_shell():
    """
    Verifica os defaults empacotados.

    O executor `docker` atende jobs com tag `docker`; o executor `shell`
    atende jobs com tags `shell` + `linux` (host).
    """
    _require_imports()
    settings = load_settings()

    assert settings.max_parallel_jobs == 4
    assert settings.persist_manifest is True
    by_name = {e.name: e for e in settings.executors}
    assert by_name["docker"].kind == "docker"
    assert by_name["docker"].tags == ("docker",)
    assert by_name["shell"].kind == "shell"
    assert set(by_name["shell"].tags) == {"shell", "linux"}
    assert by_name["shell"].options["shell"] == ["/bin/sh", "-c"]
    assert isinstance(settings.config_hash, str) and len(settings.config_hash) == 64


def test_local_override_changes_hash(tmp_path: Path):
    _require_imports()
    local = tmp_path / "stageflow.yaml"
    local.write_text("engine:\n  max_parallel_jobs: 2\n", encoding="utf-8")

    default = load_settings()
    tuned = load_settings(str(local))

    assert tuned.max_parallel_jobs == 2
    assert tuned.config_hash != default.config_hash


@pytest.mark.parametrize("value", [0, -1, "4", True])
def test_invalid_parallelism_is_rejected(value):
    _require_imports()
    with pytest.raises(InvalidSettingError):
        Settings.from_dict({"engine": {"max_parallel_jobs": value}})


def test_unknown_executor_kind_is_rejected():
    _require_imports()
    with pytest.raises(InvalidSettingError):
        Settings.from_dict({"executors": [{"name": "vm", "kind": "qemu"}]})


def test_duplicate_executor_names_are_rejected():
    """
    Nomes de executores identificam o ambiente no Manifest; duplicatas
    tornariam a rastreabilidade ambígua.
    """
    _require_imports()
    data = {
        "executors": [
            {"name": "shell", "kind": "shell"},
            {"name": "shell", "kind": "shell", "tags": ["linux"]},
        ]
    }
    with pytest.raises(InvalidSettingError):
        Settings.from_dict(data)


def test_invalid_setting_is_a_config_error():
    _require_imports()
    assert issubclass(InvalidSettingError, ConfigError)


def test_executor_options_keep_extra_keys():
    _require_imports()
    settings = Settings.from_dict(
        {"executors": [{"name": "d", "kind": "docker", "tags": ["docker"], "pull_missing": False}]}
    )
    assert settings.executors == (
        ExecutorConfig(name="d", kind="docker", tags=("docker",), options={"pull_missing": False}),
    )


def test_resolve_dir_relative_and_absolute(tmp_path: Path):
    _require_imports()
    settings = Settings()
    assert settings.resolve_dir(".stageflow/cache", workdir=tmp_path) == tmp_path / ".stageflow/cache"
    absolute = tmp_path / "elsewhere"
    assert settings.resolve_dir(str(absolute), workdir=Path("/unused")) == absolute
