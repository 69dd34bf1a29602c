"""Management command to create a user and optionally a home repository."""

import getpass
import logging
from typing import Any, final, override

from django.core.management.base import BaseCommand, CommandError

from filehub.apps.accounts.exceptions import UserExistsError
from filehub.apps.accounts.logic.credentials import create_user
from filehub.apps.files.exceptions import InvalidRootError, StorageError
from filehub.apps.files.logic.repositories import create_home_repository

logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Create a user account."""

    help = 'Create a FileHub user'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('username', help='Login name')
        parser.add_argument('--email', default='', help='Contact email')
        parser.add_argument(
            '--password',
            default=None,
            help='Password (prompted when omitted)',
        )
        parser.add_argument(
            '--admin',
            action='store_true',
            help='Grant admin privileges',
        )
        parser.add_argument(
            '--root-dir',
            default=None,
            help='Create the home repository under this root',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Create the user.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the user or repository cannot be created.
        """
        password = options['password'] or self._prompt_password()

        try:
            user = create_user(
                options['username'],
                password,
                options['email'],
                is_admin=options['admin'],
            )
        except (UserExistsError, ValueError) as error:
            raise CommandError(str(error)) from error

        self.stdout.write(self.style.SUCCESS(f'Created user {user.username}'))

        if not options['root_dir']:
            return

        try:
            repository = create_home_repository(user, options['root_dir'])
        except (InvalidRootError, StorageError) as error:
            raise CommandError(f'Invalid root dir: {error}') from error

        self.stdout.write(
            self.style.SUCCESS(
                f'Created repository {repository.name} at {repository.root_uri}',
            ),
        )

    def _prompt_password(self) -> str:
        password = getpass.getpass('Password: ')
        if password != getpass.getpass('Password (again): '):
            raise CommandError('Passwords do not match')
        return password
