"""Django management command to run the FileHub server."""

import logging
import os
import sys
from typing import Any, final, override

from cheroot.wsgi import Server as WSGIServer
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from filehub.wsgi import create_application

logger = logging.getLogger(__name__)

# Set in the child process started by the reloader
_RELOAD_ENV_VAR = 'FILEHUB_RELOAD_SUBPROCESS'


@final
class Command(BaseCommand):
    """Serve WebDAV and the JSON API from one cheroot WSGI server."""

    help = 'Run the FileHub server (WebDAV at /dav, JSON API at /api)'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--host',
            type=str,
            default=None,
            help='Listen address (default: FILEHUB_WEB_HOST)',
        )
        parser.add_argument(
            '--port',
            type=int,
            default=None,
            help='Port to bind to (default: web.port from config.yaml)',
        )
        parser.add_argument(
            '--threads',
            type=int,
            default=None,
            help='Worker threads (default: from settings)',
        )
        parser.add_argument(
            '--reload',
            action='store_true',
            default=False,
            help='Restart when a source file changes (needs the dev extra)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Serve in this process, or under the reloader with --reload.

        Args:
            args: Positional arguments (unused).
            options: Parsed command options.
        """
        use_reload = options['reload']
        is_subprocess = os.environ.get(_RELOAD_ENV_VAR) == 'true'

        if use_reload and not is_subprocess:
            self._run_with_reload(options)
        else:
            self._run_server(options)

    def _run_server(self, options: dict[str, Any]) -> None:
        """Run the server in this process.

        Args:
            options: Command options.

        Raises:
            CommandError: If the address cannot be bound.
        """
        host = options['host'] or settings.WEBDAV_HOST
        port = options['port'] or settings.WEBDAV_PORT
        threads = options['threads'] or settings.WEBDAV_THREADS

        if settings.FILEHUB_METRICS:
            logger.warning('web.metrics is set but no metrics endpoint is served')

        server = WSGIServer(
            bind_addr=(host, port),
            wsgi_app=create_application(),
            numthreads=threads,
            server_name='FileHub',
        )

        self.stdout.write(
            self.style.SUCCESS(f'Starting FileHub server on {host}:{port}'),
        )
        try:
            server.prepare()
        except OSError as error:
            logger.exception('Failed to bind %s:%d', host, port)
            raise CommandError(f'Cannot listen on {host}:{port}: {error}') from error

        try:
            logger.info(
                'FileHub server listening on %s:%d (%d threads)',
                host,
                port,
                threads,
            )
            server.serve()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nInterrupted, stopping server'))
        finally:
            server.stop()
            self.stdout.write(self.style.SUCCESS('FileHub server stopped'))

    def _run_with_reload(self, options: dict[str, Any]) -> None:
        """Serve from a child process that watchfiles restarts.

        The child runs this command again without --reload; any change to
        a .py file under the package kills and restarts it.

        Args:
            options: Command options.
        """
        try:
            import watchfiles  # noqa: PLC0415
        except ImportError:
            self.stderr.write(
                self.style.ERROR(
                    '--reload needs watchfiles. '
                    'Install with: pip install -e ".[dev]"',
                ),
            )
            sys.exit(1)

        self.stdout.write(
            self.style.SUCCESS('Starting FileHub server with auto-reload...'),
        )

        cmd_parts = [sys.executable, '-m', 'django', 'run_server']
        for option in ('host', 'port', 'threads'):
            if options[option]:
                cmd_parts.extend([f'--{option}', str(options[option])])
        cmd = ' '.join(cmd_parts)

        def watch_filter(  # noqa: WPS430
            change: watchfiles.Change,
            path: str,
        ) -> bool:
            """Only Python sources trigger a restart."""
            return path.endswith('.py')

        os.environ[_RELOAD_ENV_VAR] = 'true'

        watchfiles.run_process(
            str(settings.BASE_DIR / 'filehub'),
            target=cmd,
            target_type='command',
            watch_filter=watch_filter,
            callback=self._on_reload,
        )

    def _on_reload(self, changes: set[tuple[Any, str]]) -> None:
        """Report the changes that triggered a reload.

        Args:
            changes: Changed paths with their change kind.
        """
        for change_type, path in changes:
            self.stdout.write(
                self.style.WARNING(f'Detected {change_type.name}: {path}'),
            )
        self.stdout.write(self.style.SUCCESS('Reloading FileHub server...'))
