"""Tests for repository packing via repomix."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from codifier.core.config import CoreSettings
from codifier.core.exceptions import ExternalToolError
from codifier.integrations.repomix import inject_token, is_remote, pack_repository, redact_url


def _config(**overrides) -> CoreSettings:
    return CoreSettings(repomix_command=["repomix"], repomix_timeout_seconds=5, **overrides)


def _fake_exec(snapshot: str | None = "FILE CONTENTS", stdout: bytes = b"", returncode: int = 0, seen: list | None = None):
    """Build a create_subprocess_exec replacement that writes the output file."""

    async def fake(*args, **kwargs):
        if seen is not None:
            seen.append(args)
        output = Path(args[args.index("--output") + 1])
        if snapshot is not None:
            output.write_text(snapshot)
        proc = MagicMock()
        proc.returncode = returncode
        proc.communicate = AsyncMock(return_value=(stdout, b"fatal: repository not found"))
        proc.wait = AsyncMock(return_value=returncode)
        return proc

    return fake


class TestUrlHelpers:
    def test_is_remote(self):
        assert is_remote("https://github.com/a/b")
        assert is_remote("git@github.com:a/b.git")
        assert not is_remote("/srv/checkout")

    def test_inject_github_token(self):
        url = inject_token("https://github.com/acme/api", _config(github_token="ghp_abc"))
        assert url == "https://ghp_abc@github.com/acme/api"

    def test_inject_gitlab_token(self):
        url = inject_token("https://gitlab.example.com/acme/api", _config(gitlab_token="glpat"))
        assert url == "https://glpat@gitlab.example.com/acme/api"

    def test_inject_bitbucket_token(self):
        url = inject_token("https://bitbucket.org/acme/api", _config(bitbucket_token="bb"))
        assert url == "https://x-token-auth:bb@bitbucket.org/acme/api"

    def test_no_token_or_non_https_unchanged(self):
        assert inject_token("https://github.com/acme/api", _config()) == "https://github.com/acme/api"
        assert inject_token("git@github.com:acme/api.git", _config(github_token="t")) == "git@github.com:acme/api.git"
        assert inject_token("https://example.com/acme/api", _config(github_token="t")) == "https://example.com/acme/api"

    def test_redact_url(self):
        assert redact_url("https://x-token-auth:bb@bitbucket.org/a") == "https://bitbucket.org/a"
        assert redact_url("https://github.com/a") == "https://github.com/a"


class TestPackRepository:
    async def test_remote_pack_parses_summary(self):
        seen: list = []
        stdout = b"\x1b[1mTotal Files:\x1b[0m 12\nTotal Tokens: 1,234\n"
        with patch("asyncio.create_subprocess_exec", side_effect=_fake_exec(stdout=stdout, seen=seen)):
            result = await pack_repository("https://github.com/acme/api", _config(github_token="tok"))

        assert result.snapshot == "FILE CONTENTS"
        assert result.token_count == 1234
        assert result.file_count == 12

        args = seen[0]
        assert args[:3] == ("repomix", "--remote", "https://tok@github.com/acme/api")
        assert args[-2:] == ("--style", "plain")

    async def test_local_path_and_token_estimate(self):
        seen: list = []
        with patch("asyncio.create_subprocess_exec", side_effect=_fake_exec(snapshot="x" * 10, seen=seen)):
            result = await pack_repository("/srv/checkout", _config())

        assert seen[0][:2] == ("repomix", "/srv/checkout")
        assert result.token_count == 3
        assert result.file_count == 0

    async def test_temp_dir_removed(self):
        seen: list = []
        with patch("asyncio.create_subprocess_exec", side_effect=_fake_exec(seen=seen)):
            await pack_repository("/srv/checkout", _config())

        output = Path(seen[0][seen[0].index("--output") + 1])
        assert not output.parent.exists()

    async def test_nonzero_exit(self):
        seen: list = []
        with patch("asyncio.create_subprocess_exec", side_effect=_fake_exec(returncode=128, seen=seen)):
            with pytest.raises(ExternalToolError, match="exit 128") as exc_info:
                await pack_repository("https://github.com/acme/api", _config(github_token="secret-tok"))

        assert exc_info.value.tool == "repomix"
        assert "secret-tok" not in exc_info.value.message
        output = Path(seen[0][seen[0].index("--output") + 1])
        assert not output.parent.exists()

    async def test_missing_output(self):
        with patch("asyncio.create_subprocess_exec", side_effect=_fake_exec(snapshot=None)):
            with pytest.raises(ExternalToolError, match="no output"):
                await pack_repository("/srv/checkout", _config())

    async def test_command_not_found(self):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("repomix")):
            with pytest.raises(ExternalToolError, match="not found"):
                await pack_repository("/srv/checkout", _config())

    async def test_timeout_kills_process(self):
        proc = MagicMock()
        proc.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        proc.wait = AsyncMock(return_value=-9)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ExternalToolError, match="timed out"):
                await pack_repository("/srv/checkout", _config())

        proc.kill.assert_called_once()
