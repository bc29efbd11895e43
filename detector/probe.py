import asyncio
import logging
import sys

import psutil

from session.errors import ProbeError

logger = logging.getLogger(__name__)

# Lista "proceso|titulo" por cada ventana visible
WINDOW_LIST_SCRIPT = """
tell application "System Events"
    set appList to ""
    repeat with proc in (every process whose background only is false)
        set procName to name of proc
        try
            repeat with win in (every window of proc)
                set winTitle to name of win
                set appList to appList & procName & "|" & winTitle & linefeed
            end repeat
        end try
    end repeat
    return appList
end tell
"""

OSASCRIPT_TIMEOUT_SECS = 5


class ActivityProbe:
    async def list_windows(self) -> list[tuple[str, str]]:
        raise NotImplementedError

    async def list_processes(self) -> list[str]:
        raise NotImplementedError


def parse_window_list(output: str) -> list[tuple[str, str]]:
    windows = []
    for line in output.splitlines():
        process_name, sep, window_title = line.strip().partition("|")
        if sep and process_name and window_title:
            windows.append((process_name, window_title))
    return windows


class SystemActivityProbe(ActivityProbe):
    """Ventanas via AppleScript (solo macOS); procesos via psutil en cualquier plataforma."""

    async def list_windows(self) -> list[tuple[str, str]]:
        if sys.platform != "darwin":
            raise ProbeError(f"Listado de ventanas no soportado en {sys.platform}")

        try:
            proc = await asyncio.create_subprocess_exec(
                "osascript", "-e", WINDOW_LIST_SCRIPT,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeError(f"osascript fallo: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), OSASCRIPT_TIMEOUT_SECS)
        except asyncio.TimeoutError as e:
            proc.kill()
            raise ProbeError("osascript no respondio a tiempo") from e

        if proc.returncode != 0:
            raise ProbeError(f"osascript termino con codigo {proc.returncode}: {stderr.decode(errors='replace').strip()}")
        return parse_window_list(stdout.decode(errors="replace"))

    async def list_processes(self) -> list[str]:
        def _names():
            names = []
            for proc in psutil.process_iter(["name"]):
                try:
                    name = proc.info["name"]
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
                if name:
                    names.append(name)
            return names

        try:
            return await asyncio.to_thread(_names)
        except psutil.Error as e:
            raise ProbeError(f"No se pudo listar procesos: {e}") from e
