"""
Command-line interface for the LifeOS storage engine.

Provides commands for loading, inspecting, exporting, importing and rolling
back LifeOS storage.
"""

import json

import typer

from lifeos_storage.domain.schema import StorageVersion
from lifeos_storage.services.storage_service import LifeOSStorage
from lifeos_storage.utils.exceptions import LifeOSStorageError
from lifeos_storage.utils.logging_config import get_logger, setup_logging
from lifeos_storage.utils.parameters import ParameterLoader

app = typer.Typer(help="LifeOS storage - versioned storage, migration and backup tooling")

logger = get_logger(__name__)


def init_service(config_path: str = "config/config.yaml") -> LifeOSStorage:
    """
    Initialize configuration, logging and the storage service.

    Args:
        config_path: Path to configuration file.

    Returns:
        Storage service bound to the configured backend.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config(), "lifeos_storage")
    return LifeOSStorage.from_config(param_loader.config)


def _module_size(value: object) -> int:
    if isinstance(value, dict):
        return sum(len(v) for v in value.values() if isinstance(v, list))
    return 0


@app.command()
def load(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Run the startup flow.

    Initializes fresh storage, migrates V1 storage, or reads V2 storage, then
    prints the number of records held by each module.
    """
    try:
        service = init_service(config_path)
        data = service.load_data()

        typer.echo("Loaded LifeOS data:")
        for name, module in data.items():
            typer.echo(f"  - {name}: {_module_size(module)} records")

        status = service.get_migration_status()
        if status is not None and not status.success:
            typer.echo(f"Warning: last migration attempt failed: {status.error}", err=True)

    except LifeOSStorageError as e:
        logger.error(f"Load failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def detect(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Print the storage generation currently in use."""
    try:
        service = init_service(config_path)
        version = service.detect_storage_version()
        typer.echo(version.value if version else "none (fresh install)")

    except LifeOSStorageError as e:
        logger.error(f"Detection failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def export(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    output_dir: str | None = typer.Option(None, help="Override export directory from config"),
    stdout: bool = typer.Option(False, help="Print the export instead of writing a file"),
) -> None:
    """Export all data as a V2 JSON document."""
    try:
        service = init_service(config_path)

        if stdout:
            typer.echo(service.export_json())
            return

        path = service.export_data(output_dir)
        typer.echo(f"Data exported to {path}")

    except (LifeOSStorageError, OSError) as e:
        logger.error(f"Export failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command(name="import")
def import_(
    file: str = typer.Argument(..., help="V2, V1 or legacy JSON file to import"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Import a JSON file and save it as V2 storage.

    The file is rejected as a whole if it cannot be parsed; storage is left
    untouched in that case.
    """
    try:
        service = init_service(config_path)
        data = service.import_data(file)
        typer.echo(f"Imported {file} ({len(data)} modules)")

    except LifeOSStorageError as e:
        logger.error(f"Import failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def restore(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Roll back to the V1 backup taken before migration."""
    try:
        service = init_service(config_path)

        if not service.restore_v1_from_backup():
            typer.echo("Error: no usable V1 backup found", err=True)
            raise typer.Exit(code=1)

        typer.echo("V1 data restored from backup; the next load will migrate it again")

    except LifeOSStorageError as e:
        logger.error(f"Restore failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def cleanup(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    drop_backup: bool = typer.Option(False, help="Also delete the V1 backup"),
) -> None:
    """Remove V1 storage keys after a confirmed migration."""
    try:
        service = init_service(config_path)

        if service.detect_storage_version() is not StorageVersion.V2:
            typer.echo("Error: no V2 storage found; refusing to remove V1 data", err=True)
            raise typer.Exit(code=1)

        service.cleanup_v1_storage(keep_backup=not drop_backup)
        typer.echo("V1 storage removed" + ("" if drop_backup else "; backup kept"))

    except LifeOSStorageError as e:
        logger.error(f"Cleanup failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def status(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Show migration history and backup information."""
    try:
        service = init_service(config_path)

        version = service.detect_storage_version()
        typer.echo(f"Storage version: {version.value if version else 'none'}")
        typer.echo(f"First run pending: {service.is_first_time()}")

        history = service.get_migration_history()
        typer.echo(f"Migration attempts: {len(history)}")
        for record in history:
            outcome = "success" if record.success else f"failed ({record.error})"
            typer.echo(
                f"  - {record.timestamp}: {record.from_version} -> {record.to_version} "
                f"{outcome}, backup created: {record.backup_created}"
            )

        info = service.get_v1_backup_info()
        if info is None:
            typer.echo("V1 backup: none")
        else:
            typer.echo(f"V1 backup: {info.size} bytes, fragments: {', '.join(info.fragments)}")

    except LifeOSStorageError as e:
        logger.error(f"Status failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def validate(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """Validate the structure of the stored V2 document."""
    try:
        service = init_service(config_path)
        report = service.validate_v2_storage()

        typer.echo(json.dumps(report.model_dump(), indent=2))
        if not report.valid:
            raise typer.Exit(code=1)

    except LifeOSStorageError as e:
        logger.error(f"Validation failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
