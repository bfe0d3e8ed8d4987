"""Table catalog and dependency ordering for restores.

The catalog declares every table once, together with the foreign keys it
holds.  Both processing orders are derived from that single graph:

- ``INSERT_ORDER``: topological order, parents before children.
- ``DELETE_ORDER``: the exact reverse, children before parents.

Usage:
    from snapshot_restore.restore.catalog import (
        DELETE_ORDER,
        INSERT_ORDER,
        SCHOOL_SCHEMA,
        RestoreSchema,
        TableDef,
        ForeignKey,
        topological_order,
    )

    schema = RestoreSchema(tables=[
        TableDef(name="authors"),
        TableDef(name="books", refs=[ForeignKey(table="authors", field="author_id")]),
    ])
    topological_order(schema)
    # ['authors', 'books']
"""

from pydantic import BaseModel, Field, model_validator


class ForeignKey(BaseModel):
    """Foreign key reference to a parent table."""

    table: str          # parent table name
    field: str          # FK column in this table


class TableDef(BaseModel):
    """Definition of a table for restore operations."""

    name: str                                           # table name
    pk: str = "id"                                      # primary key / upsert conflict column
    refs: list[ForeignKey] = Field(default_factory=list)  # FKs to other catalog tables
    nullify: list[str] = Field(default_factory=list)    # columns forced to NULL on restore

    @property
    def parents(self) -> list[str]:
        """Referenced tables in declaration order, self-references removed."""
        seen: list[str] = []
        for ref in self.refs:
            if ref.table != self.name and ref.table not in seen:
                seen.append(ref.table)
        return seen


class RestoreSchema(BaseModel):
    """Declarative restore catalog.  Table names must be unique."""

    tables: list[TableDef]

    @model_validator(mode="after")
    def _check_names(self) -> "RestoreSchema":
        names = [t.name for t in self.tables]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tables in schema: {', '.join(duplicates)}")
        return self

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def get(self, name: str) -> TableDef | None:
        """Find a TableDef by name."""
        for t in self.tables:
            if t.name == name:
                return t
        return None


def topological_order(schema: RestoreSchema) -> list[str]:
    """Topological sort of the catalog based on FK dependencies.

    Returns tables in forward order: parent tables first, child tables last.
    Ties are broken by declaration order, so a catalog that is already
    declared parents-first comes back unchanged.  References to tables
    outside the catalog are ignored.

    Raises:
        ValueError: If the FK graph has a cycle.  A cycle needs a manual
            decision (deferred constraint, nullable FK set in a second pass)
            and cannot be ordered automatically.
    """
    known = set(schema.table_names)
    parents = {
        t.name: [p for p in t.parents if p in known] for t in schema.tables
    }

    sorted_tables: list[str] = []
    visited: set[str] = set()
    visiting: list[str] = []  # current DFS path, for cycle reporting

    def visit(table: str) -> None:
        if table in visited:
            return
        if table in visiting:
            cycle = visiting[visiting.index(table):] + [table]
            raise ValueError(f"FK cycle in restore schema: {' -> '.join(cycle)}")
        visiting.append(table)
        for dep in parents[table]:
            visit(dep)
        visiting.pop()
        visited.add(table)
        sorted_tables.append(table)

    for table in schema.table_names:
        visit(table)

    return sorted_tables


def _fk(table: str, field: str) -> ForeignKey:
    return ForeignKey(table=table, field=field)


# Declared parents-first; the derived INSERT_ORDER matches this listing.
SCHOOL_SCHEMA = RestoreSchema(
    tables=[
        TableDef(name="branches"),
        TableDef(name="subjects"),
        TableDef(name="teachers"),
        TableDef(name="parents", refs=[_fk("branches", "preferred_branch_id")]),
        TableDef(name="settings"),
        TableDef(name="holidays"),
        TableDef(name="promotions"),
        TableDef(
            name="admin_users",
            refs=[_fk("teachers", "teacher_id")],
            # auth.users is not part of the snapshot; accounts are re-linked separately
            nullify=["auth_user_id"],
        ),
        TableDef(name="rooms", refs=[_fk("branches", "branch_id")]),
        TableDef(name="students", refs=[_fk("parents", "parent_id")]),
        TableDef(
            name="classes",
            refs=[
                _fk("subjects", "subject_id"),
                _fk("teachers", "teacher_id"),
                _fk("branches", "branch_id"),
                _fk("rooms", "room_id"),
            ],
        ),
        TableDef(name="teaching_materials", refs=[_fk("subjects", "subject_id")]),
        TableDef(
            name="class_schedules",
            refs=[_fk("classes", "class_id"), _fk("teachers", "actual_teacher_id")],
        ),
        TableDef(
            name="enrollments",
            refs=[
                _fk("students", "student_id"),
                _fk("classes", "class_id"),
                _fk("parents", "parent_id"),
                _fk("branches", "branch_id"),
            ],
        ),
        TableDef(
            name="attendance",
            refs=[_fk("class_schedules", "schedule_id"), _fk("students", "student_id")],
        ),
        TableDef(name="trial_bookings", refs=[_fk("branches", "branch_id")]),
        TableDef(name="trial_booking_students", refs=[_fk("trial_bookings", "booking_id")]),
        TableDef(
            name="trial_sessions",
            refs=[
                _fk("trial_bookings", "booking_id"),
                _fk("subjects", "subject_id"),
                _fk("teachers", "teacher_id"),
                _fk("branches", "branch_id"),
                _fk("rooms", "room_id"),
                _fk("classes", "converted_to_class_id"),
            ],
        ),
        TableDef(name="trial_reschedule_history", refs=[_fk("trial_sessions", "session_id")]),
        TableDef(
            name="makeup_classes",
            refs=[
                _fk("classes", "original_class_id"),
                _fk("class_schedules", "original_schedule_id"),
                _fk("subjects", "subject_id"),
                _fk("students", "student_id"),
                _fk("parents", "parent_id"),
                _fk("branches", "branch_id"),
                _fk("teachers", "makeup_teacher_id"),
                _fk("branches", "makeup_branch_id"),
                _fk("rooms", "makeup_room_id"),
            ],
        ),
        TableDef(
            name="enrollment_transfer_history",
            refs=[
                _fk("enrollments", "enrollment_id"),
                _fk("classes", "from_class_id"),
                _fk("classes", "to_class_id"),
            ],
        ),
        TableDef(name="events"),
        TableDef(name="event_schedules", refs=[_fk("events", "event_id")]),
        TableDef(
            name="event_registrations",
            refs=[
                _fk("events", "event_id"),
                _fk("event_schedules", "schedule_id"),
                _fk("branches", "branch_id"),
                _fk("parents", "parent_id"),
            ],
        ),
        TableDef(
            name="event_registration_parents",
            refs=[_fk("event_registrations", "registration_id")],
        ),
        TableDef(
            name="event_registration_students",
            refs=[
                _fk("event_registrations", "registration_id"),
                _fk("students", "student_id"),
            ],
        ),
        TableDef(name="notifications"),
        TableDef(
            name="student_feedback",
            refs=[
                _fk("students", "student_id"),
                _fk("parents", "parent_id"),
                _fk("classes", "class_id"),
                _fk("subjects", "subject_id"),
                _fk("class_schedules", "schedule_id"),
                _fk("teachers", "teacher_id"),
            ],
        ),
    ]
)

INSERT_ORDER: tuple[str, ...] = tuple(topological_order(SCHOOL_SCHEMA))
DELETE_ORDER: tuple[str, ...] = tuple(reversed(INSERT_ORDER))

# Safety backup covers every table the delete and insert phases touch
TABLES_TO_BACKUP: tuple[str, ...] = tuple(SCHOOL_SCHEMA.table_names)
