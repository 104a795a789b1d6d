# File: ddlapi/relationships.py
"""
ddlapi - Relationship Derivation
=================================
Classifies the resolved foreign keys of a table set into relationships.

Rules
-----
* **Junction table**: exactly two foreign keys, both resolved, on disjoint
  columns, and every other column is a primary-key column, nullable, has a
  default or is generated.  It yields a single ``many_to_many`` relationship
  between the two referenced tables.
* **one_to_one**: the foreign key's columns form the referencing table's
  primary key or one of its unique keys.
* **one_to_many**: every other resolved foreign key.

Unresolved foreign keys (unknown target, wrong columns) are skipped; the
builder has already reported them.  Output order follows table declaration
order, then constraint order.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ddlapi.models import (
    ForeignKeyConstraint,
    JunctionLink,
    Relationship,
    RelationshipKind,
    Table,
    TableRef,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.relationships")


def resolved_target(
    fk: ForeignKeyConstraint,
    tables: Dict[TableRef, Table],
) -> Optional[Table]:
    """The referenced table when *fk* resolves to one of its keys, else None."""
    target: Optional[Table] = tables.get(fk.referenced_table)
    if target is None or not fk.referenced_columns:
        return None
    if len(fk.referenced_columns) != len(fk.columns):
        return None
    if fk.referenced_columns not in target.unique_column_sets():
        return None
    return target


def is_junction_table(table: Table, tables: Dict[TableRef, Table]) -> bool:
    """
    True when *table* only exists to link two other tables.

    Complexity: O(C) for C columns.
    """
    fks: List[ForeignKeyConstraint] = table.foreign_keys
    if len(fks) != 2:
        return False
    if any(resolved_target(fk, tables) is None for fk in fks):
        return False
    first: Set[str] = set(fks[0].columns)
    second: Set[str] = set(fks[1].columns)
    if first & second:
        return False

    pk_columns: Set[str] = set(table.primary_key_columns)
    for column in table.columns:
        if column.name in first or column.name in second:
            continue
        if column.name in pk_columns or column.nullable or column.has_default or column.is_generated:
            continue
        return False
    return True


def _fk_name(table: Table, fk: ForeignKeyConstraint) -> str:
    return fk.name or f"{table.name}_{'_'.join(fk.columns)}_fkey"


def derive_relationships(
    tables: Sequence[Table],
) -> Tuple[List[Relationship], List[TableRef]]:
    """
    Derive every relationship of *tables*.

    Returns:
        ``(relationships, junction_tables)`` in deterministic order.
    """
    by_ref: Dict[TableRef, Table] = {t.ref: t for t in tables}
    relationships: List[Relationship] = []
    junctions: List[TableRef] = []

    for table in tables:
        if is_junction_table(table, by_ref):
            left, right = table.foreign_keys
            junctions.append(table.ref)
            relationships.append(
                Relationship(
                    kind=RelationshipKind.MANY_TO_MANY,
                    name=table.name,
                    from_table=left.referenced_table,
                    from_columns=left.referenced_columns,
                    to_table=right.referenced_table,
                    to_columns=right.referenced_columns,
                    junction=JunctionLink(
                        table=table.ref,
                        from_columns=left.columns,
                        to_columns=right.columns,
                    ),
                    on_delete=left.on_delete,
                    on_update=left.on_update,
                    self_referential=left.referenced_table == right.referenced_table,
                )
            )
            logger.debug("Junction table %s → many_to_many.", table.qualified_name)
            continue

        for fk in table.foreign_keys:
            if resolved_target(fk, by_ref) is None:
                continue
            kind: RelationshipKind = (
                RelationshipKind.ONE_TO_ONE
                if table.is_unique_set(fk.columns)
                else RelationshipKind.ONE_TO_MANY
            )
            relationships.append(
                Relationship(
                    kind=kind,
                    name=_fk_name(table, fk),
                    from_table=table.ref,
                    from_columns=fk.columns,
                    to_table=fk.referenced_table,
                    to_columns=fk.referenced_columns,
                    on_delete=fk.on_delete,
                    on_update=fk.on_update,
                    self_referential=fk.referenced_table == table.ref,
                )
            )

    logger.debug(
        "Derived %d relationship(s), %d junction table(s).",
        len(relationships),
        len(junctions),
    )
    return relationships, junctions


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "derive_relationships",
    "is_junction_table",
    "resolved_target",
]

logger.debug("ddlapi.relationships loaded — %d public symbols.", len(__all__))
