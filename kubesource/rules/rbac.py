"""Relationship rules for role bindings.

Subjects receive whatever the bound role grants, so a binding propagates out
to them.  The role itself changes what the binding means, so it propagates in.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubesource.models.items import LinkedItemQuery
from kubesource.rules.base import get_query, relationship_rule
from kubesource.scope import ScopeDetails, parse_scope


def _subject_queries(resource: Mapping[str, Any], cluster: ScopeDetails) -> list[LinkedItemQuery]:
    queries: list[LinkedItemQuery] = []
    for subject in resource.get("subjects") or []:
        # Users and groups carry no namespace and resolve cluster-wide
        scope = cluster.with_namespace(subject.get("namespace"))
        queries.append(get_query(subject["kind"], subject["name"], str(scope), in_=False, out=True))
    return queries


@relationship_rule("RoleBinding")
def role_binding_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    sd = parse_scope(scope, namespaced=True)
    queries = _subject_queries(resource, sd)

    role_ref = resource["roleRef"]
    ref_scope = sd if role_ref["kind"] == "Role" else sd.with_namespace(None)
    queries.append(get_query(role_ref["kind"], role_ref["name"], str(ref_scope), in_=True, out=False))
    return queries


@relationship_rule("ClusterRoleBinding")
def cluster_role_binding_relationships(resource: Mapping[str, Any], scope: str) -> list[LinkedItemQuery]:
    sd = parse_scope(scope, namespaced=False)
    queries = _subject_queries(resource, sd)

    role_ref = resource["roleRef"]
    queries.append(get_query(role_ref["kind"], role_ref["name"], scope, in_=True, out=False))
    return queries
