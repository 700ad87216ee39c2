"""Repository condensation via the ``repomix`` CLI.

Runs repomix as a subprocess (``npx --yes repomix`` by default) and reads the
packed snapshot back from a temporary directory that is always removed.
Remote HTTPS URLs get a VCS token injected from the environment so private
repositories can be cloned.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from ..core.config import CoreSettings, get_config
from ..core.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

_TOTAL_FILES = re.compile(r"Total Files:\s*([\d,]+)")
_TOTAL_TOKENS = re.compile(r"Total Tokens:\s*([\d,]+)")
_ANSI = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(frozen=True)
class PackResult:
    snapshot: str
    token_count: int
    file_count: int


def is_remote(url: str) -> bool:
    return url.startswith(("http://", "https://", "git@"))


def inject_token(url: str, config: CoreSettings | None = None) -> str:
    """Embed a VCS token into an HTTPS URL.

    GitHub and GitLab use ``https://<token>@host/...``; Bitbucket uses
    ``https://x-token-auth:<token>@host/...``. SSH URLs, unknown hosts and
    hosts without a configured token are returned unchanged.
    """
    if not url.startswith("https://"):
        return url

    config = config or get_config()
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()

    if "github.com" in host:
        token, user = config.github_token, None
    elif "gitlab.com" in host or "gitlab." in host:
        token, user = config.gitlab_token, None
    elif "bitbucket.org" in host:
        token, user = config.bitbucket_token, "x-token-auth"
    else:
        return url

    if not token:
        return url

    host_port = parts.hostname or ""
    if parts.port:
        host_port = f"{host_port}:{parts.port}"
    credentials = f"{user}:{quote(token, safe='')}" if user else quote(token, safe="")
    return urlunsplit((parts.scheme, f"{credentials}@{host_port}", parts.path, parts.query, parts.fragment))


def redact_url(url: str) -> str:
    """Strip credentials from a URL for logging."""
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url
    host_port = parts.hostname or ""
    if parts.port:
        host_port = f"{host_port}:{parts.port}"
    return urlunsplit((parts.scheme, host_port, parts.path, parts.query, parts.fragment))


def _parse_count(pattern: re.Pattern[str], text: str) -> int | None:
    match = pattern.search(_ANSI.sub("", text))
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


async def pack_repository(url: str, config: CoreSettings | None = None) -> PackResult:
    """Pack a repository (remote URL or local path) into a text snapshot.

    Raises:
        ExternalToolError: repomix is missing, fails, times out, or writes
            no output.
    """
    config = config or get_config()
    tmp_dir = Path(tempfile.mkdtemp(prefix="codifier-repomix-"))
    output_file = tmp_dir / "output.txt"

    remote = is_remote(url)
    target = ["--remote", inject_token(url, config)] if remote else [url]
    args = [*config.repomix_command, *target, "--output", str(output_file), "--style", "plain"]

    logger.info(f"Packing repository with repomix: {redact_url(url)}")

    try:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ExternalToolError(f"repomix command not found: {config.repomix_command[0]!r}", tool="repomix") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=config.repomix_timeout_seconds)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise ExternalToolError(
                f"repomix timed out after {config.repomix_timeout_seconds}s packing {redact_url(url)}",
                tool="repomix",
            )

        if proc.returncode != 0:
            err_msg = stderr.decode("utf-8", errors="replace")[:500]
            raise ExternalToolError(
                f"Failed to pack repository {redact_url(url)} (exit {proc.returncode}): {err_msg}",
                tool="repomix",
            )

        try:
            snapshot = output_file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ExternalToolError(f"repomix produced no output for {redact_url(url)}", tool="repomix") from exc

        summary = stdout.decode("utf-8", errors="replace")
        token_count = _parse_count(_TOTAL_TOKENS, summary)
        if token_count is None:
            token_count = math.ceil(len(snapshot) / 4)
        file_count = _parse_count(_TOTAL_FILES, summary) or 0

        logger.info(
            "Repository packed",
            extra={"extra_data": {"url": redact_url(url), "files": file_count, "tokens": token_count, "chars": len(snapshot)}},
        )
        return PackResult(snapshot=snapshot, token_count=token_count, file_count=file_count)
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
