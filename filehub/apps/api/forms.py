"""Validation of JSON request bodies."""

from django import forms


class LoginForm(forms.Form):
    """Credentials posted to the login endpoint."""

    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)


class SetupForm(forms.Form):
    """First-run request creating the admin user and home repository."""

    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)
    email = forms.EmailField()
    root_dir = forms.CharField(max_length=1024)
