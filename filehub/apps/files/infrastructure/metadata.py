"""Content type lookup for stored files."""

from typing import Final

DIRECTORY_CONTENT_TYPE: Final = 'httpd/unix-directory'
DEFAULT_CONTENT_TYPE: Final = 'application/octet-stream'

# Fixed table so every backend reports the same types
CONTENT_TYPES: Final = {
    '.txt': 'text/plain',
    '.htm': 'text/html',
    '.html': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
}


def get_file_extension(filename: str) -> str:
    """Get the lower-cased extension of a file name, dot included.

    Args:
        filename: File name (e.g., 'Notes.TXT').

    Returns:
        Extension (e.g., '.txt'), empty string if none.
    """
    name = filename.rsplit('/', 1)[-1]
    stem, dot, extension = name.rpartition('.')
    if not dot or not stem:
        return ''
    return f'.{extension.lower()}'


def detect_content_type(filename: str) -> str:
    """Detect the content type of a file from its name.

    Args:
        filename: File name or path.

    Returns:
        Content type string, 'application/octet-stream' when unknown.
    """
    return CONTENT_TYPES.get(get_file_extension(filename), DEFAULT_CONTENT_TYPE)
