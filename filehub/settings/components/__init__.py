"""Shared objects for settings components.

``config`` reads environment overrides through python-decouple and
``file_config`` holds the merged contents of ``config.yaml``.
"""

from pathlib import Path

from decouple import AutoConfig

from filehub.settings.loader import load_config

# Project root: the directory holding manage.py
BASE_DIR = Path(__file__).parent.parent.parent.parent

config = AutoConfig(search_path=BASE_DIR.joinpath('config'))

file_config = load_config(config('CONFIG_PATH', default=None))
