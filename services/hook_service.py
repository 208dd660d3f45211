"""
services/hook_service.py

Responsibility: Runs the operator-configured hook command after a successful
record create/change, passing DOMAIN, NEW_IP and OLD_IP in the environment.
Does NOT: decide whether a hook should run, or let a hook failure reach the
reconciliation loop.
"""

from __future__ import annotations

import asyncio
import logging
import os

from exceptions import HookError

logger = logging.getLogger(__name__)


class HookService:
    """
    Fire-and-forget runner for hook commands.

    Commands go through the platform shell (asyncio.create_subprocess_shell).
    The invoking target's cycle waits for the command to exit or for the
    timeout, after which the process is killed.
    """

    def __init__(self, timeout: float | None = 60.0) -> None:
        """
        Args:
            timeout: Seconds to wait for a hook before killing it; None waits forever.
        """
        self._timeout = timeout

    async def invoke(self, command: str | None, domain: str, new_ip: str, old_ip: str) -> bool:
        """
        Runs the hook for one record change; failures are logged, never raised.

        Args:
            command: Shell command to run, or None for no hook.
            domain: The configured domain that changed.
            new_ip: The IP now published.
            old_ip: The previous IP, "" when the record was created.

        Returns:
            True if the command ran and exited 0, False otherwise (including
            when no command is configured).
        """
        if not command:
            return False

        logger.info("Executing hook command for %s: %s", domain, command)
        env = {"DOMAIN": domain, "NEW_IP": new_ip, "OLD_IP": old_ip}
        try:
            await self.execute(command, env)
        except HookError as exc:
            logger.warning("Hook command failed for %s: %s", domain, exc)
            return False

        logger.info("Hook command executed successfully for %s", domain)
        return True

    async def execute(self, command: str, env: dict[str, str]) -> int:
        """
        Runs command with env added to the current environment.

        Args:
            command: Shell command line.
            env: Extra environment variables.

        Returns:
            The exit status (always 0; other statuses raise).

        Raises:
            HookError: If the command cannot be spawned, times out, or exits non-zero.
        """
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **env},
            )
        except OSError as exc:
            raise HookError(f"Failed to execute hook command: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise HookError(f"Hook command timed out after {self._timeout}s") from exc

        out = stdout.decode(errors="replace").strip()
        err = stderr.decode(errors="replace").strip()
        if out:
            logger.info("Hook command stdout: %s", out)
        if err:
            logger.info("Hook command stderr: %s", err)

        if process.returncode != 0:
            raise HookError(f"Hook command failed with exit code {process.returncode}: {err}")
        return process.returncode
