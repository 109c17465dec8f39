"""Process-wide identity and environment lookups.

Everything the orchestrator needs to know about the running process goes
through an environment provider, so the policy and runner logic can be
exercised with a fake one.
"""

from __future__ import annotations

import getpass
import os
import shutil
import socket
import sys
from pathlib import Path
from typing import Protocol

from darwin_rebuild.errors import PrivilegeCheckError

DEFAULT_EDITOR = "vi"
PROFILE_ENV_VAR = "profile"


class Environment(Protocol):
    """Capabilities the orchestrator reads from the outside world."""

    def user(self) -> str: ...

    def hostname(self) -> str: ...

    def editor(self) -> str: ...

    def profile_override(self) -> str | None: ...

    def executable(self) -> str: ...

    def is_writable(self, path: Path) -> bool: ...

    def variables(self) -> dict[str, str]: ...


class SystemEnvironment:
    """Environment provider backed by the real process state."""

    def user(self) -> str:
        try:
            name = getpass.getuser()
        except (OSError, KeyError) as e:
            raise PrivilegeCheckError(f"Unable to determine the current user: {e}") from e
        if not name:
            raise PrivilegeCheckError("Unable to determine the current user")
        return name

    def hostname(self) -> str:
        return socket.gethostname()

    def editor(self) -> str:
        return os.environ.get("EDITOR") or DEFAULT_EDITOR

    def profile_override(self) -> str | None:
        return os.environ.get(PROFILE_ENV_VAR) or None

    def executable(self) -> str:
        """Return the path this program was invoked as.

        When invoked through ``PATH`` the bare name is looked up so callers
        always get a path they can resolve.
        """
        argv0 = sys.argv[0]
        if os.sep not in argv0:
            found = shutil.which(argv0)
            if found:
                return found
        return argv0

    def is_writable(self, path: Path) -> bool:
        return os.access(path, os.W_OK)

    def variables(self) -> dict[str, str]:
        return dict(os.environ)
