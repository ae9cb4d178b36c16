"""CLI tools for forms administration."""

import sys
from pathlib import Path

import click

from app.db.session import SessionLocal, engine
from app.services import approval_service, backup_service, config_override_service


@click.group()
def cli():
    """Forms CLI tools."""
    config_override_service.apply_all(engine)


@cli.command("backup:create")
@click.option("--include-submissions", is_flag=True, help="Include form submissions in backup")
@click.option("--local", is_flag=True, help="Save backup locally")
@click.option("--ftp", is_flag=True, help="Upload backup to FTP")
@click.option("--s3", is_flag=True, help="Upload backup to S3")
@click.option("--all", "all_destinations", is_flag=True, help="Backup to all configured destinations")
def backup_create(include_submissions: bool, local: bool, ftp: bool, s3: bool, all_destinations: bool):
    """
    Create a backup of forms, templates and workflows.

    Without a destination flag the backup is saved locally. Exits with 1
    when any destination failed; unconfigured destinations only warn.

    Example:
        python -m app.cli backup:create --all --include-submissions
    """
    click.echo("Creating backup...")

    db = SessionLocal()
    try:
        result = backup_service.run_backup(
            db,
            include_submissions=include_submissions,
            local=local,
            ftp=ftp,
            s3=s3,
            all_destinations=all_destinations,
        )
    finally:
        db.close()

    stats = result.data["stats"]
    click.echo("Backup data created:")
    click.echo(f"  - Categories: {stats['categories_count']}")
    click.echo(f"  - Forms: {stats['forms_count']}")
    click.echo(f"  - Email templates: {stats['email_templates_count']}")
    click.echo(f"  - Workflows: {stats['workflows_count']}")
    if include_submissions:
        click.echo(f"  - Submissions: {stats['submissions_count']}")

    if result.local_path:
        click.echo(f"✓ Backup saved locally: {result.local_path}")
    for destination in result.destinations:
        if destination != "local":
            click.echo(f"✓ Backup uploaded to {destination.upper()} successfully")
    for warning in result.warnings:
        click.echo(f"⚠ {warning}")
    for error in result.errors:
        click.echo(f"❌ {error}", err=True)

    if result.succeeded:
        click.echo("✓ Backup completed successfully!")
        return
    click.echo("⚠ Backup completed with some errors")
    sys.exit(1)


@cli.command("backup:list")
def backup_list():
    """
    List local backups, newest first.

    Example:
        python -m app.cli backup:list
    """
    backups = backup_service.list_local_backups()
    if not backups:
        click.echo("No local backups found")
        return
    for backup in backups:
        click.echo(f"{backup['filename']}  {backup['size']} B  {backup['created_at']}")


@cli.command("report:monthly")
@click.option("--year", type=int, required=True, help="Report year")
@click.option("--month", type=click.IntRange(1, 12), required=True, help="Report month (1-12)")
def report_monthly(year: int, month: int):
    """
    Generate the monthly submission report PDF.

    Example:
        python -m app.cli report:monthly --year 2026 --month 9
    """
    from app.services import report_service

    db = SessionLocal()
    try:
        path = report_service.save_monthly_report(db, year, month)
    finally:
        db.close()
    click.echo(f"✓ Report written: {path}")


@cli.command("export:submissions")
@click.option("--form", "form_slug", required=True, help="Form slug")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Target file (default: odpovede-<form>-<date>.csv in the current directory)",
)
def export_submissions(form_slug: str, output: str | None):
    """
    Export all submissions of a form as CSV.

    Example:
        python -m app.cli export:submissions --form ziadost-o-dovolenku
    """
    from app.db.models import Form
    from app.services import export_service

    db = SessionLocal()
    try:
        form = db.query(Form).filter(Form.slug == form_slug).first()
        if not form:
            click.echo(f"❌ Form not found: {form_slug}", err=True)
            sys.exit(1)
        content = export_service.submissions_csv(db, form)
        path = Path(output or export_service.export_filename(form))
    finally:
        db.close()

    path.write_text(content, encoding="utf-8")
    click.echo(f"✓ Export written: {path}")


@cli.command("approvals:cleanup")
def approvals_cleanup():
    """
    Delete expired pending approval requests.

    Example:
        python -m app.cli approvals:cleanup
    """
    db = SessionLocal()
    try:
        deleted = approval_service.cleanup_expired(db)
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()
    click.echo(f"✓ Deleted {deleted} expired approval request(s)")


if __name__ == "__main__":
    cli()
