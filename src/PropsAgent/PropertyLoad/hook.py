"""Start-up entry points for hosts that load properties before doing anything else.

``premain`` mirrors an agent hook called before the application's ``main``;
``agentmain`` is the same pipeline attached to an already running process. A
host that cannot pass arguments can call :func:`install_from_environment` from
``sitecustomize`` and supply the specifier string through
``PROPSAGENT_SOURCES``::

    PROPSAGENT_SOURCES='!https://config/app.properties,/etc/app.properties' python app.py
"""

from __future__ import annotations

import logging
import os
from typing import List, Mapping, Optional

from .loader import LoadOutcome, PropertyLoader
from .namespace import ConfigNamespace
from .errors import ConfigError
from .settings import SOURCES_ENV_VAR, LoaderSettings, get_default_settings

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.hook")

__all__ = ["premain", "agentmain", "install_from_environment"]


def _run(
    entry: str,
    agent_args: Optional[str],
    namespace: Optional[ConfigNamespace],
    settings: Optional[LoaderSettings],
) -> List[LoadOutcome]:
    if not agent_args:
        LOGGER.debug(f"{entry}: no property sources given", extra={"stage": "hook"})
        return []
    LOGGER.debug(f"{entry}: loading property sources", extra={"stage": "hook"})
    if settings is None:
        try:
            settings = get_default_settings()
        except ConfigError as exc:
            # Start-up continues with built-in defaults.
            LOGGER.error(
                f"{entry}: invalid loader settings, using defaults",
                exc_info=True,
                extra={"stage": "hook", "error": str(exc)},
            )
            settings = LoaderSettings()
    return PropertyLoader(namespace, settings).load(agent_args)


def premain(
    agent_args: Optional[str],
    namespace: Optional[ConfigNamespace] = None,
    settings: Optional[LoaderSettings] = None,
) -> List[LoadOutcome]:
    """Load ``agent_args`` sources during process start-up."""

    return _run("premain", agent_args, namespace, settings)


def agentmain(
    agent_args: Optional[str],
    namespace: Optional[ConfigNamespace] = None,
    settings: Optional[LoaderSettings] = None,
) -> List[LoadOutcome]:
    """Load ``agent_args`` sources into an already running process."""

    return _run("agentmain", agent_args, namespace, settings)


def install_from_environment(
    environ: Optional[Mapping[str, str]] = None,
    namespace: Optional[ConfigNamespace] = None,
    settings: Optional[LoaderSettings] = None,
) -> List[LoadOutcome]:
    """Run :func:`premain` with the specifier string found in ``PROPSAGENT_SOURCES``."""

    env = os.environ if environ is None else environ
    return premain(env.get(SOURCES_ENV_VAR), namespace, settings)
