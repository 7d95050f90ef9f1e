"""Publish rendered manifests to git repositories."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .clients import ClientFactory, GitRepository
from .config import GitTarget, NormalizedCIDR, Policy
from .errors import ConfigurationError
from .manifests import ManifestRenderer

LOG = logging.getLogger(__name__)

REPO_NAME_RE = re.compile(r"/([^/]+)\.git$")
HTTPS_PREFIX_RE = re.compile(r"^https://")


@dataclass
class PublishResult:
    policy: str
    repository: Optional[str]
    branch: Optional[str]
    committed: bool = False
    error: Optional[str] = None


def repository_name(url: str) -> str:
    match = REPO_NAME_RE.search(url)
    if not match:
        raise ConfigurationError(
            f"invalid git repository URL '{url}'",
            component="publisher",
            method="repository_name",
        )
    return match.group(1)


def authenticated_url(url: str, key: Optional[str]) -> str:
    """Embed the access token in an HTTPS clone URL."""

    if not key:
        return url
    return HTTPS_PREFIX_RE.sub(f"https://token:{key}@", url, count=1)


class ArtifactPublisher:
    """Render a policy's manifests into each git target and push changes.

    A target whose configuration is unusable is reported in its
    :class:`PublishResult` and skipped; git failures propagate.
    """

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    def publish(self, policy: Policy, cidrs: Iterable[NormalizedCIDR]) -> List[PublishResult]:
        cidrs = list(cidrs)
        results: List[PublishResult] = []
        for target in policy.git_targets:
            try:
                results.append(self.publish_target(policy, target, cidrs))
            except ConfigurationError as exc:
                LOG.error(
                    "Skipping git target for policy %s: %s",
                    policy.name,
                    exc,
                    extra={"context": exc.context()},
                )
                results.append(
                    PublishResult(
                        policy=policy.name,
                        repository=target.endpoint.name if target.endpoint else None,
                        branch=target.branch,
                        error=str(exc),
                    )
                )
        return results

    def publish_target(
        self,
        policy: Policy,
        target: GitTarget,
        cidrs: Iterable[NormalizedCIDR],
    ) -> PublishResult:
        if target.endpoint is None or not target.branch:
            raise ConfigurationError(
                "git endpoint or branch not defined",
                component="publisher",
                method="publish_target",
                target=policy.name,
            )
        name = repository_name(target.endpoint.url)
        branch = target.branch
        LOG.info(
            "Publishing policy %s to repository %s branch %s",
            policy.name,
            name,
            branch,
        )

        repo = self._clients.repository(
            name, authenticated_url(target.endpoint.url, target.endpoint.key)
        )
        self._select_branch(repo, branch)

        rendered = ManifestRenderer(repo.path).render(policy.name, cidrs)

        result = PublishResult(policy=policy.name, repository=name, branch=branch)
        if repo.is_clean():
            LOG.debug(
                "No changes to commit for %s on branch %s of %s",
                rendered.file_name,
                branch,
                name,
            )
            return result

        repo.add_all()
        repo.commit(f"Update {rendered.file_name}")
        repo.push(branch)
        result.committed = True
        LOG.info("%s pushed to branch %s on %s", rendered.file_name, branch, name)
        return result

    @staticmethod
    def _select_branch(repo: GitRepository, branch: str) -> None:
        repo.fetch()
        known = set(repo.branches())
        if branch not in known and f"remotes/origin/{branch}" not in known:
            LOG.info("Creating new branch %s", branch)
            repo.checkout_new_branch(branch)
        else:
            repo.checkout(branch)
            repo.pull(branch)

        if not repo.has_upstream():
            repo.push(branch, set_upstream=True)
