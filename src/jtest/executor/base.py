from pathlib import Path
from typing import List, Sequence

from ..core.models import CompileResult
from .workspace import Workspace


class Toolchain:
    # submissions are always staged under this name so the entry point is fixed
    entry_source: str = "Main.java"
    entry_class: str = "Main"

    def compile(self, ws: Workspace, sources: Sequence[Path], classpath_extras: Sequence[Path] = ()) -> CompileResult: ...
    def run_command(self, ws: Workspace, compiled: CompileResult) -> List[str]: ...
