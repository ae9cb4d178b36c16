"""Tests for the admin CLI commands."""

from datetime import timedelta

from click.testing import CliRunner

from app import cli as cli_module
from app.db.models import ApprovalRequest
from app.services import backup_service
from app.utils.dates import utcnow


def test_backup_create_defaults_to_local(db):
    result = CliRunner().invoke(cli_module.cli, ["backup:create"])

    assert result.exit_code == 0, result.output
    assert "Backup saved locally" in result.output
    assert "Backup completed successfully!" in result.output
    assert len(backup_service.list_local_backups()) == 1


def test_backup_create_warns_for_unconfigured_destinations(db):
    result = CliRunner().invoke(cli_module.cli, ["backup:create", "--all"])

    assert result.exit_code == 0, result.output
    assert "FTP backup skipped - not configured" in result.output
    assert "S3 backup skipped - not configured" in result.output


def test_backup_create_exits_nonzero_on_error(db, monkeypatch):
    def _boom(data, filename=None):
        raise OSError("read-only file system")

    monkeypatch.setattr(backup_service, "save_to_local", _boom)

    result = CliRunner().invoke(cli_module.cli, ["backup:create", "--include-submissions"])

    assert result.exit_code == 1
    assert "local: read-only file system" in result.output
    assert "Submissions: 0" in result.output


def test_backup_list(db):
    backup_service.save_to_local({}, "backup_2026-04-01_080000.json")

    result = CliRunner().invoke(cli_module.cli, ["backup:list"])

    assert result.exit_code == 0
    assert "backup_2026-04-01_080000.json" in result.output


def test_approvals_cleanup_removes_expired_pending(db, make_workflow, make_execution, test_form):
    workflow = make_workflow(test_form, [], [])
    execution = make_execution(workflow)
    db.add_all(
        [
            ApprovalRequest(
                workflow_execution_id=execution.id,
                node_id="n1",
                approver_email="boss@example.com",
                expires_at=utcnow() - timedelta(days=1),
            ),
            ApprovalRequest(
                workflow_execution_id=execution.id,
                node_id="n2",
                approver_email="boss@example.com",
            ),
        ]
    )
    db.commit()

    result = CliRunner().invoke(cli_module.cli, ["approvals:cleanup"])

    assert result.exit_code == 0, result.output
    assert "Deleted 1 expired approval request(s)" in result.output
    db.expire_all()
    assert [a.node_id for a in db.query(ApprovalRequest).all()] == ["n2"]


def test_report_monthly_writes_pdf(db, test_submission, tmp_path):
    now = utcnow()
    result = CliRunner().invoke(
        cli_module.cli, ["report:monthly", "--year", str(now.year), "--month", str(now.month)]
    )

    assert result.exit_code == 0, result.output
    path = result.output.split("Report written: ", 1)[1].strip()
    with open(path, "rb") as f:
        assert f.read(5) == b"%PDF-"


def test_export_submissions_writes_csv(db, test_form, test_submission, tmp_path):
    target = tmp_path / "export.csv"

    result = CliRunner().invoke(
        cli_module.cli, ["export:submissions", "--form", test_form.slug, "--output", str(target)]
    )

    assert result.exit_code == 0, result.output
    content = target.read_text(encoding="utf-8")
    assert content.startswith("\ufeffID;Dátum odoslania;Stav")
    assert str(test_submission.id) in content


def test_export_submissions_unknown_form(db):
    result = CliRunner().invoke(cli_module.cli, ["export:submissions", "--form", "missing"])

    assert result.exit_code == 1
    assert "Form not found: missing" in result.output
