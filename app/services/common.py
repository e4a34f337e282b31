from urllib.parse import urlparse


def clean_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def missing_fields(**fields) -> list[str]:
    return [name for name, value in fields.items() if not clean_text(value)]


def url_hostname(url: str) -> str:
    if not url:
        return ""
    try:
        return urlparse(url.strip()).hostname or url
    except ValueError:
        return url


CHANGE_INSERT = "insert"
CHANGE_UPDATE = "update"
CHANGE_DELETE = "delete"

CHANGE_KINDS = {CHANGE_INSERT, CHANGE_UPDATE, CHANGE_DELETE}
