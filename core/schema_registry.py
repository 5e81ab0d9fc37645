# core/schema_registry.py
from __future__ import annotations
import importlib
import logging
import pkgutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

Installer = Callable[[Engine], None]

# name -> installer; names sort into install order ("10_roles" before "20_accounts")
_INSTALLERS: Dict[str, Installer] = {}

def register(name: Union[str, Installer], installer: Optional[Installer] = None):
    """
    Record a table installer. Accepted forms:

        @register("20_accounts")
        @register                      # keyed by function name
        register("20_accounts", fn)

    A name registered twice keeps its first installer, so re-importing a
    schema module is harmless.
    """
    if callable(name) and installer is None:
        _INSTALLERS.setdefault(name.__name__, name)
        return name
    if not isinstance(name, str):
        raise TypeError("register() expects a name or an installer function")
    if installer is not None:
        _INSTALLERS.setdefault(name, installer)
        return installer

    def decorator(fn: Installer) -> Installer:
        _INSTALLERS.setdefault(name, fn)
        return fn
    return decorator

def registered() -> List[str]:
    return sorted(_INSTALLERS)

def run_all(engine: Engine) -> None:
    """Install every registered table in name order. A failure aborts: later tables reference earlier ones."""
    names = registered()
    log.info("Installing %d schemas", len(names))
    for name in names:
        log.debug("Applying schema %s", name)
        _INSTALLERS[name](engine)

def auto_discover(start_path: Union[str, Path], package: str) -> None:
    """Import each module under start_path as `<package>.<module>` so its @register runs."""
    start_path = Path(start_path)
    if not start_path.is_dir():
        log.warning("No schema directory at %s", start_path)
        return
    for info in pkgutil.iter_modules([str(start_path)], prefix=f"{package}."):
        if not info.ispkg:
            importlib.import_module(info.name)
