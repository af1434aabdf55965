"""Tests for the administration CLI."""

from click.testing import CliRunner

from wealth_crm.cli import cli
from wealth_crm.core.security import decode_access_token
from wealth_crm.db.models import User


def _run(*args):
    return CliRunner().invoke(cli, list(args))


def test_create_user_and_duplicate(db):
    result = _run("create-user", "--email", "Jane@Firm.com", "--name", "Jane Advisor", "--role", "manager")
    assert result.exit_code == 0, result.output
    assert "✓ Created user jane@firm.com (manager)" in result.output

    duplicate = _run("create-user", "--email", "jane@firm.com", "--name", "Jane Again")
    assert duplicate.exit_code == 1
    assert "User already exists" in duplicate.output

    user = db.query(User).filter(User.email == "jane@firm.com").one()
    assert user.role == "manager"


def test_create_user_rejects_unknown_role(db):
    result = _run("create-user", "--email", "x@firm.com", "--name", "X", "--role", "intern")
    assert result.exit_code == 2


def test_issue_token_and_revoke(db):
    _run("create-user", "--email", "ops@firm.com", "--name", "Ops", "--role", "operations")

    issued = _run("issue-token", "--email", "ops@firm.com", "--hours", "1")
    assert issued.exit_code == 0, issued.output
    payload = decode_access_token(issued.output.strip())
    assert payload["role"] == "operations"
    assert payload["token_version"] == 1

    revoked = _run("revoke-sessions", "--email", "ops@firm.com")
    assert revoked.exit_code == 0, revoked.output
    assert "Token version: 1 → 2" in revoked.output

    user = db.query(User).filter(User.email == "ops@firm.com").one()
    assert user.token_version == 2


def test_unknown_user_exits_nonzero(db):
    for command in ("issue-token", "revoke-sessions"):
        result = _run(command, "--email", "ghost@firm.com")
        assert result.exit_code == 1
        assert "User not found" in result.output


def test_seed_workflows_is_idempotent(db):
    first = _run("seed-workflows")
    assert first.exit_code == 0, first.output
    assert first.output.count("✓ Created template") == 3

    second = _run("seed-workflows")
    assert "already present" in second.output


def test_recalculate_profitability_with_no_rows(db):
    result = _run("recalculate-profitability")
    assert result.exit_code == 0, result.output
    assert "Recalculated 0 profitability rows" in result.output


def test_init_db_is_safe_to_rerun(db):
    result = _run("init-db")
    assert result.exit_code == 0, result.output
    assert "tables" in result.output
