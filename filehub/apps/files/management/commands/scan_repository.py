"""Management command to rescan a repository and fix quota usage."""

import logging
from typing import Any, final, override

from django.core.management.base import BaseCommand, CommandError

from filehub.apps.files.exceptions import StorageError
from filehub.apps.files.infrastructure.paths import ROOT
from filehub.apps.files.logic.quota_operations import (
    get_or_create_quota,
    measure_usage,
)
from filehub.apps.files.models import Repository

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Walk a repository and reset its owner's used bytes."""

    help = 'Scan a repository and recalculate quota usage from storage'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('name', help='Repository name')
        parser.add_argument(
            '--path',
            default=ROOT,
            help='Directory to scan (default: repository root)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report usage without updating the quota',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the scan.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the repository is unknown or unreadable.
        """
        try:
            repository = Repository.objects.select_related('owner').get(
                name=options['name'],
            )
        except Repository.DoesNotExist as error:
            raise CommandError(
                f'Repository not found: {options["name"]}',
            ) from error

        try:
            file_count, total_bytes = measure_usage(
                repository,
                options['path'],
            )
        except StorageError as error:
            logger.exception('Scan of repository %s failed', repository.name)
            raise CommandError(f'Scan failed: {error}') from error

        self.stdout.write(
            f'{repository.name}: {file_count} files, {total_bytes} bytes',
        )

        if options['dry_run'] or options['path'] != ROOT:
            return

        quota = get_or_create_quota(repository.owner)
        old_usage = quota.used_bytes
        quota.used_bytes = total_bytes
        quota.save(update_fields=['used_bytes'])

        logger.info(
            'Rescanned repository %s: usage %d -> %d bytes',
            repository.name,
            old_usage,
            total_bytes,
        )
        self.stdout.write(
            self.style.SUCCESS(
                f'Updated usage of {repository.owner.username}: '
                f'{old_usage} -> {total_bytes} bytes',
            ),
        )
