"""
Effective permission resolution – role plus additive security groups.
"""

from typing import Callable, Iterable, Mapping

from office_access.models import EffectivePermissions

CapabilityLookup = Callable[[str], Iterable[str]]


def capability_lookup(table: Mapping[str, Iterable[str]]) -> CapabilityLookup:
    """Wrap a group -> capabilities mapping; unknown groups grant nothing."""
    def lookup(group_code: str) -> Iterable[str]:
        return table.get(group_code, ())
    return lookup


def resolve_permissions(role: str, groups: Iterable[str], get_group_capabilities: CapabilityLookup) -> EffectivePermissions:
    """
    Union of every group's capabilities.

    Groups never override one another, so the result does not depend on
    the order the groups were added in.
    """
    capabilities = set()
    for code in set(groups):
        capabilities.update(get_group_capabilities(code))
    return EffectivePermissions(role=role, capabilities=frozenset(capabilities))
