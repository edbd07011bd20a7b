import re

import pytest
from click.testing import CliRunner

from apps.cli.api_keys import cli

TOKEN_PATTERN = re.compile(r"bh_[0-9a-f]{64}")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_args(tmp_path):
    return ["--database-url", f"sqlite:///{tmp_path / 'cli.db'}"]


def _create(runner, db_args, name, *extra):
    result = runner.invoke(cli, db_args + ["create", name, *extra])
    assert result.exit_code == 0, result.output
    return TOKEN_PATTERN.search(result.output).group(0)


def test_create_prints_key_once(runner, db_args):
    result = runner.invoke(cli, db_args + ["create", "Blog bot"])
    assert result.exit_code == 0
    assert "Created API key 1 (Blog bot)" in result.output
    assert "cannot be shown again" in result.output
    assert len(TOKEN_PATTERN.findall(result.output)) == 1


def test_create_with_permissions(runner, db_args):
    result = runner.invoke(cli, db_args + ["create", "Admin", "-p", "admin", "-p", "read"])
    assert result.exit_code == 0
    assert "Permissions: admin, read" in result.output


def test_list_never_shows_keys(runner, db_args):
    token = _create(runner, db_args, "Listed")

    result = runner.invoke(cli, db_args + ["list"])
    assert result.exit_code == 0
    assert "Listed" in result.output
    assert "active" in result.output
    assert token not in result.output


def test_list_empty(runner, db_args):
    result = runner.invoke(cli, db_args + ["list"])
    assert result.exit_code == 0
    assert "No API keys found." in result.output


def test_revoke(runner, db_args):
    _create(runner, db_args, "Revoke me")

    result = runner.invoke(cli, db_args + ["revoke", "1"])
    assert result.exit_code == 0
    assert "Revoked API key 1" in result.output
    assert "revoked" in runner.invoke(cli, db_args + ["list"]).output


def test_revoke_unknown_exits_nonzero(runner, db_args):
    result = runner.invoke(cli, db_args + ["revoke", "42"])
    assert result.exit_code == 1


def test_delete_with_confirmation(runner, db_args):
    _create(runner, db_args, "Delete me")

    aborted = runner.invoke(cli, db_args + ["delete", "1"], input="n\n")
    assert aborted.exit_code != 0
    assert "Delete me" in runner.invoke(cli, db_args + ["list"]).output

    result = runner.invoke(cli, db_args + ["delete", "1"], input="y\n")
    assert result.exit_code == 0
    assert "No API keys found." in runner.invoke(cli, db_args + ["list"]).output


def test_delete_unknown_exits_nonzero(runner, db_args):
    result = runner.invoke(cli, db_args + ["delete", "7", "--yes"])
    assert result.exit_code == 1
