"""CLI argument handling (commands that do not start services)."""
from click.testing import CliRunner

from tieredmemory import __version__
from tieredmemory.cli import cli


def test_version():
    result = CliRunner().invoke(cli, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"tieredmemory v{__version__}"


def test_consolidate_requires_user_and_conversation_together():
    result = CliRunner().invoke(cli, ["consolidate", "--user", "u1"])
    assert result.exit_code == 2
    assert "--user and --conversation must be given together" in result.output
