"""
Tool search path and working directory, carried explicitly.

Installers extend the search path on a ToolContext; child processes receive
the rendered environment. Nothing here touches os.environ.
"""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


@dataclass
class ToolContext:
    """Executable search path and working directory for installed tools.

    Attributes:
        search_path: Directories searched for executables, highest priority first
        working_directory: Directory tools and child processes run in
    """
    search_path: list[Path] = field(default_factory=list)
    working_directory: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "ToolContext":
        """Seed a context from an environment's PATH."""
        environ = os.environ if environ is None else environ
        entries = [Path(p) for p in environ.get("PATH", "").split(os.pathsep) if p]
        return cls(search_path=entries)

    def prepend_path(self, directory: Path) -> None:
        """Put a directory first on the search path, removing earlier occurrences."""
        self.search_path = [directory] + [p for p in self.search_path if p != directory]

    def path_string(self) -> str:
        return os.pathsep.join(str(p) for p in self.search_path)

    def environment(self, base: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Render a child-process environment with PATH set from the search path.

        Args:
            base: Environment to start from (defaults to a copy of os.environ)
        """
        env = dict(os.environ if base is None else base)
        env["PATH"] = self.path_string()
        return env

    def which(self, executable: str) -> Optional[str]:
        """Locate an executable on this context's search path."""
        return shutil.which(executable, path=self.path_string())
