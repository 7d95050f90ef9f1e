"""Git working copies driven through the ``git`` command line."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from netpolicy_sync.clients import GitRepository
from netpolicy_sync.errors import TransportError

LOG = logging.getLogger(__name__)

CREDENTIALS_RE = re.compile(r"(https?://)[^/@\s]+@")


def redact(text: str) -> str:
    """Hide credentials embedded in clone URLs."""

    return CREDENTIALS_RE.sub(r"\1***@", text)


class GitCLIRepository(GitRepository):
    """Working copy at ``path`` with ``origin`` pointing at the clone URL."""

    def __init__(
        self,
        path: Path,
        *,
        author_name: str = "netpolicy-sync",
        author_email: str = "netpolicy-sync@localhost",
        binary: str = "git",
    ) -> None:
        self._path = Path(path)
        self._binary = binary
        self._env: Dict[str, str] = {
            **os.environ,
            "GIT_AUTHOR_NAME": author_name,
            "GIT_AUTHOR_EMAIL": author_email,
            "GIT_COMMITTER_NAME": author_name,
            "GIT_COMMITTER_EMAIL": author_email,
            "GIT_TERMINAL_PROMPT": "0",
        }

    @classmethod
    def open_or_clone(cls, path: Path, url: str, **kwargs) -> "GitCLIRepository":
        repo = cls(path, **kwargs)
        if not (repo.path / ".git").exists():
            repo.path.parent.mkdir(parents=True, exist_ok=True)
            LOG.info("Cloning %s into %s", redact(url), repo.path)
            repo._git("clone", url, str(repo.path), cwd=repo.path.parent)
        return repo

    @property
    def path(self) -> Path:
        return self._path

    def _run(self, args: Sequence[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess[str]:
        cmd = [self._binary, *args]
        LOG.debug("Executing: %s", redact(" ".join(cmd)))
        return subprocess.run(
            cmd,
            cwd=str(cwd or self._path),
            env=self._env,
            check=False,
            text=True,
            capture_output=True,
        )

    def _git(self, *args: str, cwd: Optional[Path] = None) -> str:
        result = self._run(args, cwd=cwd)
        if result.returncode != 0:
            command = redact(" ".join(["git", *args]))
            stderr = redact(result.stderr.strip())
            LOG.error(
                "%s failed in %s: %s",
                command,
                self._path,
                stderr,
                extra={"component": "git", "method": args[0]},
            )
            raise TransportError(
                f"{command} failed: {stderr}",
                component="git",
                method=args[0],
                target=str(self._path),
            )
        return result.stdout

    def fetch(self) -> None:
        self._git("fetch", "origin")

    def branches(self) -> List[str]:
        names: List[str] = []
        for line in self._git("branch", "-a").splitlines():
            name = line.strip().lstrip("* ").strip()
            if not name or name.startswith("(") or "->" in name:
                continue
            names.append(name)
        return names

    def checkout_new_branch(self, branch: str) -> None:
        self._git("checkout", "-b", branch)

    def checkout(self, branch: str) -> None:
        self._git("checkout", branch)

    def pull(self, branch: str) -> None:
        self._git("pull", "origin", branch)

    def has_upstream(self) -> bool:
        result = self._run(["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"])
        return result.returncode == 0

    def push(self, branch: str, set_upstream: bool = False) -> None:
        if set_upstream:
            self._git("push", "--set-upstream", "origin", branch)
        else:
            self._git("push", "origin", branch)

    def is_clean(self) -> bool:
        return not self._git("status", "--porcelain").strip()

    def add_all(self) -> None:
        self._git("add", "--all")

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)
