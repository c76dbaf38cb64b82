"""Runs package install/uninstall scripts in a child Python process.

The package's files are materialized into a temporary directory, the script
is started with the current interpreter and receives a JSON message on stdin::

    {"event": "install", "package": {"id": "A", "version": "1.0.0"},
     "package_path": "/tmp/...", "target": {"name": "Web", "kind": "project",
     "target_framework": "net45", "root": "Web"}}

Lines the script prints on stdout are logged. A non-zero exit status or a
timeout fails the script.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
from typing import Any, Dict, Iterable, Optional

from common.errors import ScriptExecutionError
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants

logger = logging.getLogger(__name__)


class ScriptHost:
    """Out-of-process runner for package scripts.

    Args:
        timeout: Seconds a script may run; defaults to ``Constants.SCRIPT_TIMEOUT_SEC``.
        python: Interpreter used to run scripts; defaults to ``sys.executable``.
    """

    def __init__(self, timeout: Optional[int] = None, python: Optional[str] = None) -> None:
        self.timeout = timeout if timeout is not None else Constants.SCRIPT_TIMEOUT_SEC
        self.python = python or sys.executable

    def run(self, script: str, files: Iterable[Any], message: Dict[str, Any]) -> None:
        """Run ``script`` (a path inside the package) with the package files on disk.

        Args:
            script: '/'-separated path of the script within the package.
            files: The package's ``PackageFile`` objects.
            message: JSON-serializable context sent on stdin; ``package_path``
                is filled in by the host.

        Raises:
            ScriptExecutionError: The script exits non-zero, times out or
                cannot be started.
        """
        with tempfile.TemporaryDirectory(prefix="depplan-") as package_path:
            for package_file in files:
                full = os.path.join(package_path, *package_file.path.replace("\\", "/").split("/"))
                os.makedirs(os.path.dirname(full), exist_ok=True)
                with open(full, "w", encoding="utf-8") as fh:
                    fh.write(package_file.content)
            script_path = os.path.join(package_path, *script.split("/"))
            payload = json.dumps(dict(message, package_path=package_path))

            with Timer() as t:
                try:
                    result = subprocess.run(  # noqa: S603
                        [self.python, script_path],
                        input=payload,
                        capture_output=True,
                        text=True,
                        cwd=package_path,
                        timeout=self.timeout,
                        check=False,
                    )
                except subprocess.TimeoutExpired as e:
                    raise ScriptExecutionError(script, f"timed out after {self.timeout}s") from e
                except OSError as e:
                    raise ScriptExecutionError(script, f"could not be started: {e}") from e

        for line in (result.stdout or "").splitlines():
            if line.strip():
                logger.info("[%s] %s", script, line)
        if is_debug_enabled(logger):
            logger.debug(
                "Script finished",
                extra=extra_context(
                    event="script_run",
                    component="script_host",
                    outcome="ok" if result.returncode == 0 else "failed",
                    duration_ms=t.duration_ms(),
                    returncode=result.returncode,
                ),
            )
        if result.returncode != 0:
            detail = (result.stderr or "").strip().splitlines()
            reason = detail[-1] if detail else f"exited with status {result.returncode}"
            raise ScriptExecutionError(script, reason, result.returncode)
