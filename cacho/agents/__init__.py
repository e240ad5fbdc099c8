"""
Registry of Cacho bot agents.
Decorate an Agent subclass with @register_agent("key") to expose it to simulations and the
online host; every module in this package is imported on first use so decorators run.
"""

import importlib
import os
import pkgutil

AGENT_MAP = {}


def register_agent(name):
    """
    Class decorator storing the agent under 'name' in AGENT_MAP.
    Usage:
        @register_agent("statistical")
        class StatisticalAgent(Agent): ...
    """
    def decorator(cls):
        if name in AGENT_MAP and AGENT_MAP[name] is not cls:
            raise ValueError(f"agent name {name!r} is already taken by {AGENT_MAP[name].__name__}")
        AGENT_MAP[name] = cls
        return cls
    return decorator


def create_agent(name, **kwargs):
    """
    Instantiate a registered agent.
    Raises:
        KeyError: If no agent is registered under 'name'.
    """
    try:
        cls = AGENT_MAP[name]
    except KeyError:
        raise KeyError(f"unknown agent {name!r}; known agents: {sorted(AGENT_MAP)}") from None
    return cls(**kwargs)


for _, _modname, _ispkg in pkgutil.iter_modules([os.path.dirname(__file__)]):
    if not _ispkg and _modname != "base":
        importlib.import_module(f"{__name__}.{_modname}")
