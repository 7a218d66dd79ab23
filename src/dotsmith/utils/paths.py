"""Path helpers: config directory discovery and portable (~-relative) paths."""

import os
from pathlib import Path
from typing import Union

CONFIG_DIR_ENV = "DOTSMITH_CONFIG_DIR"


def config_dir() -> Path:
    """Return the dotsmith config directory.

    Priority: ``DOTSMITH_CONFIG_DIR`` > ``$XDG_CONFIG_HOME/dotsmith`` >
    ``~/.config/dotsmith``.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "dotsmith"


def expand_path(path: Union[str, Path]) -> Path:
    """Expand a portable path string into an absolute path.

    Only ``~`` and ``~/...`` are expanded, ``~user`` forms are left alone.
    Symlinks are not resolved: a deployed symlink is tracked at its own
    location.
    """
    text = str(path)
    if text == "~":
        return Path.home()
    if text.startswith("~/"):
        return Path.home() / text[2:]
    return Path(text).absolute()


def contract_path(path: Union[str, Path]) -> str:
    """Contract an absolute path under the home directory to ``~/...`` form.

    ``/home/user/.config/tmux`` -> ``~/.config/tmux``
    """
    p = Path(path)
    try:
        suffix = p.relative_to(Path.home())
    except ValueError:
        return str(p)
    if str(suffix) == ".":
        return "~"
    return f"~/{suffix.as_posix()}"


__all__ = [
    "CONFIG_DIR_ENV",
    "config_dir",
    "expand_path",
    "contract_path",
]
