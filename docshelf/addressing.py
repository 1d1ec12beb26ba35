"""
Address classification: is an identifier an ID or a path, and which scope?

IDs are a fixed alphabetic prefix plus a zero-padded counter of at least
three digits. The two scopes use disjoint prefixes, so an ID alone names
its scope; paths carry no scope and are searched project-first.
"""

from typing import Optional

from .errors import InvalidAddressError
from .types import SCOPE_ORDER, Address, ResolvedAddress, Scope, ScopeLayout, normalize_doc_path


class AddressResolver:
    """
    Classifies identifiers against the ID patterns of both scopes.

    Example:
        resolver = AddressResolver(layouts)
        resolver.classify_and_resolve("doc001")      # id, project
        resolver.classify_and_resolve("auth/jwt")    # path, scope searched
    """

    def __init__(self, layouts: dict[Scope, ScopeLayout]):
        missing = [s for s in SCOPE_ORDER if s not in layouts]
        if missing:
            raise ValueError(f"Missing scope layouts: {', '.join(s.value for s in missing)}")
        self._layouts = dict(layouts)

        # Disjoint prefix spaces: no scope's pattern may accept the other's IDs
        for scope in SCOPE_ORDER:
            for other in SCOPE_ORDER:
                if scope is other:
                    continue
                sample = self._layouts[other].format_id(1)
                if self._layouts[scope].id_pattern.match(sample):
                    raise ValueError(
                        f"ID prefixes overlap: {scope.value} pattern accepts "
                        f"{other.value} id {sample!r}"
                    )

    def layout(self, scope: Scope) -> ScopeLayout:
        return self._layouts[scope]

    def scope_of_id(self, identifier: str) -> Optional[Scope]:
        """Scope whose ID pattern fully matches identifier, or None."""
        for scope in SCOPE_ORDER:
            if self._layouts[scope].id_pattern.match(identifier):
                return scope
        return None

    def is_id(self, identifier: str) -> bool:
        return self.scope_of_id(identifier) is not None

    def classify_and_resolve(
        self,
        identifier: str,
        explicit_scope: "Optional[Scope | str]" = None,
    ) -> ResolvedAddress:
        """
        Decide whether identifier is an ID or a path and which scope applies.

        An explicit scope is honored verbatim (after validating its name).
        Without one, an ID's scope comes from its prefix; a path's scope is
        left as None, meaning "project first, then shared".

        Raises:
            InvalidAddressError: Empty identifier, bad path or bad scope name
        """
        scope = Scope.parse(explicit_scope) if explicit_scope is not None else None
        if identifier is None or not str(identifier).strip():
            raise InvalidAddressError("Identifier cannot be empty", {"identifier": identifier})
        identifier = str(identifier).strip()

        detected = self.scope_of_id(identifier)
        if detected is not None:
            return ResolvedAddress(mode="id", value=identifier, scope=scope or detected)
        return ResolvedAddress(mode="path", value=normalize_doc_path(identifier), scope=scope)

    def to_address(
        self,
        target: "Address | str",
        scope: "Optional[Scope | str]" = None,
    ) -> Address:
        """
        Normalize a raw identifier or an Address into a canonical Address.

        For ID addresses without scope the prefix decides; an ID that matches
        neither pattern is rejected. Path addresses get a normalized path.
        """
        if isinstance(target, Address):
            explicit = target.scope if target.scope is not None else scope
            if target.kind == "id":
                value = str(target.value).strip()
                detected = self.scope_of_id(value)
                if detected is None:
                    patterns = " or ".join(
                        self._layouts[s].id_pattern.pattern for s in SCOPE_ORDER
                    )
                    raise InvalidAddressError(
                        f"Invalid ID format: {value!r}. Expected {patterns}",
                        {"id": value},
                    )
                return Address("id", value, Scope.parse(explicit) if explicit else detected)
            return Address(
                "path",
                normalize_doc_path(target.value),
                Scope.parse(explicit) if explicit else None,
            )

        resolved = self.classify_and_resolve(target, scope)
        return Address(resolved.mode, resolved.value, resolved.scope)
