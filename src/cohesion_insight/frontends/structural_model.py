"""Language-neutral structural model front-end.

Any ecosystem can feed the engine by emitting a ``*.units.json`` document:

    {"units": [{"id": "shop.OrderResource", "role": "controller",
                "markers": ["@RestController"],
                "members": [{"id": "repo", "type": "OrderRepository",
                             "collaborator": true}],
                "methods": [{"id": "place", "references": ["repo"],
                             "calls": ["shop.OrderRepository"],
                             "contributions": [{"category": "branch"},
                                               {"category": "loop", "nested": true}]}]}]}

Collaborator references are derived from ``references``; explicit
``collaborator-reference`` contributions are accepted too. References are
kept verbatim, so a reference to a missing member surfaces later as an
analysis invariant violation of that unit.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from ..exceptions import ErrorCode, ParseError
from ..model import ContributionCategory, LoadContribution, Member, Method, Role, StructuralUnit
from .base import FrontendAdapter


class StructuralModelFrontend(FrontendAdapter):
    """Reads externally supplied structural models."""

    name = "structural-model"
    suffixes = (".units.json",)

    def parse(self, content: str, rel_path: str) -> List[StructuralUnit]:
        try:
            document = json.loads(content)
        except ValueError as e:
            raise ParseError(rel_path, f"invalid JSON: {e}", ErrorCode.CI102)

        units = document.get("units") if isinstance(document, dict) else document
        if not isinstance(units, list):
            raise ParseError(rel_path, "expected a 'units' array", ErrorCode.CI102)

        return [self._unit(raw, rel_path, index) for index, raw in enumerate(units)]

    def _unit(self, raw: Any, rel_path: str, index: int) -> StructuralUnit:
        where = f"units[{index}]"
        if not isinstance(raw, dict):
            self._fail(rel_path, f"{where} must be an object")
        unit_id = self._string(raw.get("id"), rel_path, f"{where}.id")

        role: Optional[Role] = None
        if raw.get("role") is not None:
            try:
                role = Role.parse(self._string(raw["role"], rel_path, f"{where}.role"))
            except ValueError:
                self._fail(rel_path, f"{where}.role: unknown role {raw['role']!r}")

        markers = tuple(
            self._string(m, rel_path, f"{where}.markers")
            for m in self._list(raw, "markers", rel_path, where)
        )

        members: list[Member] = []
        for j, m in enumerate(self._list(raw, "members", rel_path, where)):
            if not isinstance(m, dict):
                self._fail(rel_path, f"{where}.members[{j}] must be an object")
            type_descriptor = m.get("type", "")
            if not isinstance(type_descriptor, str):
                self._fail(rel_path, f"{where}.members[{j}].type must be a string")
            collaborator = self._flag(m, "collaborator", rel_path, f"{where}.members[{j}]")
            members.append(
                Member(
                    id=self._string(m.get("id"), rel_path, f"{where}.members[{j}].id"),
                    type_descriptor=type_descriptor,
                    is_collaborator=collaborator,
                    type_name=(type_descriptor or None) if collaborator else None,
                )
            )
        self._unique([m.id for m in members], rel_path, f"{where}.members")
        collaborators = {m.id for m in members if m.is_collaborator}

        methods: list[Method] = []
        for j, m in enumerate(self._list(raw, "methods", rel_path, where)):
            methods.append(self._method(m, unit_id, collaborators, rel_path, f"{where}.methods[{j}]"))
        self._unique([m.id for m in methods], rel_path, f"{where}.methods")

        return StructuralUnit(
            id=unit_id,
            source=rel_path,
            members=tuple(members),
            methods=tuple(methods),
            markers=markers,
            declared_role=role,
        )

    def _method(
        self, raw: Any, unit_id: str, collaborators: set, rel_path: str, where: str
    ) -> Method:
        if not isinstance(raw, dict):
            self._fail(rel_path, f"{where} must be an object")
        method_id = self._string(raw.get("id"), rel_path, f"{where}.id")
        references = [
            self._string(r, rel_path, f"{where}.references")
            for r in self._list(raw, "references", rel_path, where)
        ]
        calls = [
            self._string(c, rel_path, f"{where}.calls")
            for c in self._list(raw, "calls", rel_path, where)
        ]

        explicit: list[LoadContribution] = []
        for k, c in enumerate(self._list(raw, "contributions", rel_path, where)):
            explicit.append(self._contribution(c, rel_path, f"{where}.contributions[{k}]"))

        listed = {
            c.member_id
            for c in explicit
            if c.category is ContributionCategory.COLLABORATOR_REFERENCE
        }
        derived = [
            LoadContribution(category=ContributionCategory.COLLABORATOR_REFERENCE, member_id=ref)
            for ref in dict.fromkeys(references)
            if ref in collaborators and ref not in listed
        ]

        return Method(
            id=method_id,
            unit_id=unit_id,
            referenced_members=frozenset(references) | frozenset(m for m in listed if m),
            contributions=tuple(derived + explicit),
            called_units=frozenset(calls),
            line=self._line(raw, rel_path, where),
        )

    def _contribution(self, raw: Any, rel_path: str, where: str) -> LoadContribution:
        if isinstance(raw, str):
            raw = {"category": raw}
        if not isinstance(raw, dict):
            self._fail(rel_path, f"{where} must be an object or a category name")
        try:
            category = ContributionCategory(raw.get("category"))
        except ValueError:
            self._fail(rel_path, f"{where}: unknown category {raw.get('category')!r}")

        member = raw.get("member")
        if member is not None and not isinstance(member, str):
            self._fail(rel_path, f"{where}.member must be a string")
        if category is ContributionCategory.COLLABORATOR_REFERENCE and not member:
            self._fail(rel_path, f"{where}: collaborator-reference needs a 'member'")
        chain = raw.get("chain")
        if chain is not None and (isinstance(chain, bool) or not isinstance(chain, int)):
            self._fail(rel_path, f"{where}.chain must be an integer")

        return LoadContribution(
            category=category,
            nested=self._flag(raw, "nested", rel_path, where),
            member_id=member,
            chain_id=chain,
            line=self._line(raw, rel_path, where),
        )

    @staticmethod
    def _string(value: Any, rel_path: str, where: str) -> str:
        if not isinstance(value, str) or not value:
            raise ParseError(rel_path, f"{where} must be a non-empty string", ErrorCode.CI102)
        return value

    def _list(self, raw: dict, key: str, rel_path: str, where: str) -> list:
        value = raw.get(key, [])
        if not isinstance(value, list):
            self._fail(rel_path, f"{where}.{key} must be an array")
        return value

    def _flag(self, raw: dict, key: str, rel_path: str, where: str) -> bool:
        value = raw.get(key, False)
        if not isinstance(value, bool):
            self._fail(rel_path, f"{where}.{key} must be true or false")
        return value

    def _line(self, raw: dict, rel_path: str, where: str) -> Optional[int]:
        line = raw.get("line")
        if line is not None and (isinstance(line, bool) or not isinstance(line, int)):
            self._fail(rel_path, f"{where}.line must be an integer")
        return line

    @staticmethod
    def _unique(ids: list, rel_path: str, where: str) -> None:
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ParseError(
                rel_path, f"{where}: duplicate ids {', '.join(duplicates)}", ErrorCode.CI102
            )

    @staticmethod
    def _fail(rel_path: str, reason: str) -> None:
        raise ParseError(rel_path, reason, ErrorCode.CI102)
