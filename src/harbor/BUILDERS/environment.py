"""
Classification of a stack as a local development setup or a production deployment.
"""
from enum import Enum
from typing import Optional

from ..MODELS.stack import Stack

_LOCAL_NAMES = {"local", "development", "dev"}
_PRODUCTION_NAMES = {"production", "prod"}


class Environment(str, Enum):
    """
    Deployment environment. Every routing and hardening decision depends on it.
    """
    LOCAL = "local"
    PRODUCTION = "production"

    @property
    def is_local(self) -> bool:
        return self is Environment.LOCAL

    @property
    def is_production(self) -> bool:
        return self is Environment.PRODUCTION


def environment_from_domain(domain: str) -> Environment:
    """
    Guesses the environment from the shape of a domain: `localhost`, an empty
    domain or anything under `.local` / `.localhost` is local.
    """
    domain = (domain or "").strip().lower()
    if not domain or domain == "localhost":
        return Environment.LOCAL
    if domain.endswith(".local") or domain.endswith(".localhost"):
        return Environment.LOCAL
    return Environment.PRODUCTION


def environment_from_name(name: str) -> Optional[Environment]:
    """Maps an explicit environment name (case-insensitive); `None` when unrecognised."""
    name = (name or "").strip().lower()
    if name in _LOCAL_NAMES:
        return Environment.LOCAL
    if name in _PRODUCTION_NAMES:
        return Environment.PRODUCTION
    return None


def resolve_environment(stack: Stack) -> Environment:
    """
    Resolves the environment of a stack. An explicit `environment` field wins
    (case-insensitive); anything unrecognised falls back to the domain heuristic.

    :param stack: The stack to classify.
    :return: The resolved environment. Never raises.
    """
    return environment_from_name(stack.environment) or environment_from_domain(stack.domain)
