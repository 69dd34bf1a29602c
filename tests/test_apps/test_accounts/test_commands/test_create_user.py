"""Tests for create_user management command."""

import io

import pytest
from django.core.management import CommandError, call_command

from filehub.apps.accounts.logic.credentials import authenticate
from filehub.apps.accounts.models import User
from filehub.apps.files.models import Repository


@pytest.mark.django_db
def test_create_with_password():
    """Test a user is created from command line options."""
    out = io.StringIO()

    call_command(
        'create_user',
        'Bob',
        '--password',
        'pw',
        '--email',
        'bob@example.com',
        stdout=out,
    )

    user = User.objects.get(username='bob')
    assert user.email == 'bob@example.com'
    assert not user.is_admin
    assert authenticate('bob', 'pw') == user
    assert 'Created user bob' in out.getvalue()


@pytest.mark.django_db
def test_create_admin():
    """Test --admin grants admin rights."""
    call_command('create_user', 'root', '--password', 'pw', '--admin')

    assert User.objects.get(username='root').is_admin


@pytest.mark.django_db
def test_prompted_password(monkeypatch):
    """Test the password is prompted twice when omitted."""
    monkeypatch.setattr('getpass.getpass', lambda prompt: 'typed')

    call_command('create_user', 'carol')

    assert authenticate('carol', 'typed') is not None


@pytest.mark.django_db
def test_prompted_passwords_must_match(monkeypatch):
    """Test differing prompts abort."""
    answers = iter(['one', 'two'])
    monkeypatch.setattr('getpass.getpass', lambda prompt: next(answers))

    with pytest.raises(CommandError, match='do not match'):
        call_command('create_user', 'carol')

    assert not User.objects.exists()


@pytest.mark.django_db
def test_duplicate_user():
    """Test an existing username is a command error."""
    call_command('create_user', 'bob', '--password', 'pw')

    with pytest.raises(CommandError, match='already exists'):
        call_command('create_user', 'bob', '--password', 'pw')


@pytest.mark.django_db
def test_with_root_dir(settings, tmp_path):
    """Test --root-dir creates the home repository."""
    settings.FILEHUB_ROOT_DIRS = [str(tmp_path)]

    call_command(
        'create_user',
        'bob',
        '--password',
        'pw',
        '--root-dir',
        str(tmp_path),
    )

    repository = Repository.objects.get(name='bob')
    assert repository.root_uri == tmp_path.as_uri()
    assert (tmp_path / 'bob').is_dir()


@pytest.mark.django_db
def test_invalid_root_dir(settings, tmp_path):
    """Test a root outside the allowed dirs is a command error."""
    settings.FILEHUB_ROOT_DIRS = [str(tmp_path)]

    with pytest.raises(CommandError, match='Invalid root dir'):
        call_command(
            'create_user',
            'bob',
            '--password',
            'pw',
            '--root-dir',
            '/not/allowed',
        )
