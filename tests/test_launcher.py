"""Тесты запуска сервисов."""
from unittest import mock

import pytest

from filmoteka import main as launcher


def test_parse_arguments_defaults():
    args = launcher.parse_arguments([])
    assert args.service == "all"
    assert args.config is None


def test_parse_arguments_rejects_unknown_service():
    with pytest.raises(SystemExit):
        launcher.parse_arguments(["--service", "search-service"])


def test_missing_config_file(tmp_path):
    code = launcher.main(["--service", "auth-service", "--config", str(tmp_path / "missing.env")])
    assert code == 1


def test_unreachable_store_aborts_startup():
    with mock.patch(
        "filmoteka.config.database.check_database_connection", return_value=False
    ), mock.patch.object(launcher.uvicorn, "run") as run:
        code = launcher.main(["--service", "catalog-service"])

    assert code == 1
    run.assert_not_called()


def test_run_service_starts_uvicorn():
    with mock.patch.object(launcher, "check_stores"), \
            mock.patch.object(launcher.uvicorn, "run") as run:
        code = launcher.main(["--service", "auth-service"])

    assert code == 0
    assert run.call_args.args[0] == "filmoteka.services.auth_service.main:app"
    assert run.call_args.kwargs["port"] == 8081
