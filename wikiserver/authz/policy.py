from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

from wikiserver.auth.models import Identity
from wikiserver.settings.store import ConfigStore, ConfigTree, NodeKind, node_kind

logger = logging.getLogger(__name__)

VIEW = "view"
UPLOAD = "upload"


class TenantExistsError(Exception):
    """A wiki of that name is already recorded in the configuration."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"wiki already exists: {name}")


@dataclass(frozen=True)
class TenantPolicy:
    public: bool = False
    owner: Optional[str] = None
    # Level name -> capabilities granted to that level on this wiki
    access: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def capabilities_for(self, level: str) -> FrozenSet[str]:
        return self.access.get(level, frozenset())


def _capabilities(raw: Any) -> FrozenSet[str]:
    kind = node_kind(raw)
    if kind is NodeKind.SEQUENCE:
        return frozenset(str(c) for c in raw if isinstance(c, str))
    if kind is NodeKind.SCALAR and isinstance(raw, str) and raw:
        return frozenset([raw])
    return frozenset()


def policy_from_tree(raw: Any) -> TenantPolicy:
    """Build a TenantPolicy from the configuration subtree for one wiki."""
    if node_kind(raw) is not NodeKind.MAPPING:
        return TenantPolicy()
    owner = raw.get("owner")
    access_raw = raw.get("access")
    access: Dict[str, FrozenSet[str]] = {}
    if node_kind(access_raw) is NodeKind.MAPPING:
        for level, caps in access_raw.items():
            access[str(level)] = _capabilities(caps)
    return TenantPolicy(
        # Only a literal true makes a wiki public; "false" strings etc. stay private.
        public=raw.get("public") is True,
        owner=owner if isinstance(owner, str) and owner else None,
        access=access,
    )


def resolve_tenant_policy(effective: ConfigTree, tenant: str) -> TenantPolicy:
    """
    Look up the policy for `tenant`.

    Read-only: a wiki with no recorded policy gets the default (private, no owner,
    no access) without anything being written back to the configuration.
    """
    wikis = effective.get("wikis")
    if node_kind(wikis) is not NodeKind.MAPPING:
        return TenantPolicy()
    return policy_from_tree(wikis.get(tenant))


def can(policy: TenantPolicy, identity: Optional[Identity], capability: str) -> bool:
    """True if the identity's level has been granted `capability` on this wiki."""
    if identity is None:
        return False
    return capability in policy.capabilities_for(identity.level)


def can_view(policy: TenantPolicy, identity: Optional[Identity]) -> bool:
    if policy.public:
        return True
    if identity is None:
        return False
    if policy.owner is not None and identity.name == policy.owner:
        return True
    return can(policy, identity, VIEW)


def can_upload(policy: TenantPolicy, identity: Optional[Identity]) -> bool:
    # Owners do not automatically get upload privileges.
    return can(policy, identity, UPLOAD)


def build_tenant_setting(name: str, creator: Identity, requested_public: bool) -> ConfigTree:
    return {"wikis": {name: {"public": bool(requested_public), "owner": creator.name}}}


def tenant_recorded(tree: ConfigTree, name: str) -> bool:
    """True if `name` is a key under `wikis`, whatever its value."""
    wikis = tree.get("wikis")
    return node_kind(wikis) is NodeKind.MAPPING and name in wikis


def create_tenant_policy(
    store: ConfigStore, name: str, creator: Identity, requested_public: bool = False
) -> TenantPolicy:
    """
    Record the initial policy for a newly created wiki.

    The creator becomes the owner. No access entries are granted to any level;
    those have to be added by an explicit edit. Callers are responsible for
    checking that anything they pass here does not exceed the creator's own rights.

    Raises TenantExistsError if the wiki is already configured (in the defaults,
    or in the local file as it is on disk when the write lock is taken), and
    ConfigStoreError (from the store) if the policy could not be persisted.
    """

    def _not_recorded(fresh: ConfigTree, effective: ConfigTree) -> None:
        if tenant_recorded(fresh, name) or tenant_recorded(effective, name):
            raise TenantExistsError(name)

    effective = store.apply_setting(
        build_tenant_setting(name, creator, requested_public), precondition=_not_recorded
    )
    logger.info("Initialised wiki settings for %s (owner=%s public=%s)", name, creator.name, bool(requested_public))
    return resolve_tenant_policy(effective, name)


class TenantAuthorizer:
    """Authorization questions asked by the HTTP layer, answered from a ConfigStore."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    def policy(self, tenant: str) -> TenantPolicy:
        return resolve_tenant_policy(self.store.effective, tenant)

    def can_view(self, tenant: str, identity: Optional[Identity]) -> bool:
        return can_view(self.policy(tenant), identity)

    def can_upload(self, tenant: str, identity: Optional[Identity]) -> bool:
        return can_upload(self.policy(tenant), identity)

    def create_tenant(self, name: str, creator: Identity, requested_public: bool = False) -> TenantPolicy:
        return create_tenant_policy(self.store, name, creator, requested_public)
