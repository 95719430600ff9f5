"""CVS interface layer — the target repository driver."""

from git2cvs.cvs.driver import (
    CvsContext,
    CvsDriver,
    DriverError,
    chunk_arguments,
    sanitise_module_name,
)

__all__ = [
    "CvsContext",
    "CvsDriver",
    "DriverError",
    "chunk_arguments",
    "sanitise_module_name",
]
