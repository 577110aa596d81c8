# Overwritten by the release build
VERSION = "0.1.0"
GITCOMMIT = ""


def version_string() -> str:
    if GITCOMMIT:
        return f"kmscrypt {VERSION} ({GITCOMMIT})"
    return f"kmscrypt {VERSION}"
