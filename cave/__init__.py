"""cave: a version manager for the containerized code_aster solver.

Select, pin and run a specific code_aster build without writing Docker
invocations by hand:
  - ``cave use <version>`` sets the global default version
  - ``cave pin <version>`` pins a version for the current directory
  - ``cave run -- <args>`` runs ``run_aster`` in the resolved image
  - ``cave list`` / ``cave available`` show local and published versions
"""

__version__ = "0.1.0"
__description__ = "Version manager for the code_aster solver Docker images"

from cave.core.engine import ExecutionEngine
from cave.core.resolver import VersionResolver
from cave.cli.app import app as cli

__all__ = ["ExecutionEngine", "VersionResolver", "cli", "__version__"]
