"""JSON representations of API resources."""

from typing import Any

from filehub.apps.accounts.models import User


def serialize_user(user: User) -> dict[str, Any]:
    """Public fields of a user; HA1 is never included."""
    return {
        'id': user.pk,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'is_admin': user.is_admin,
        'created_at': user.created_at.isoformat() if user.created_at else None,
        'last_login': user.last_login.isoformat() if user.last_login else None,
    }
