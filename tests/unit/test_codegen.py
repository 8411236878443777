"""Tests for DDL generation."""

import pytest

from dynschema.exceptions import ConstraintViolation, NotFoundError, ValidationError
from dynschema.schema.catalog import column_type_from_storage
from dynschema.schema.codegen import DDLGenerator, PlanContext
from dynschema.schema.models import (
    ColumnDefinition,
    ColumnMetadata,
    ForeignKey,
    ForeignKeyInfo,
    TableMetadata,
)
from dynschema.schema.requests import (
    AddColumns,
    AddForeignKeyColumns,
    AlterTable,
    CreateTable,
    DropColumns,
    DropForeignKeyColumns,
    DropTable,
    RenameColumns,
    RenameTable,
    UpdateColumns,
)
from dynschema.types import ColumnType, ReferentialAction


def make_table(
    name: str,
    columns: list[tuple[str, str]] = (),
    foreign_keys: tuple[ForeignKeyInfo, ...] = (),
    referenced_by: tuple[ForeignKeyInfo, ...] = (),
) -> TableMetadata:
    """TableMetadata with the managed columns plus ``(name, storage_type)`` pairs."""
    cols = [ColumnMetadata("id", ColumnType.UUID, "uuid", False, primary_key=True, is_unique=True)]
    for col_name, storage in columns:
        cols.append(ColumnMetadata(col_name, column_type_from_storage(storage), storage, True))
    cols.append(ColumnMetadata("created_at", ColumnType.DATETIME, "timestamp with time zone", True))
    cols.append(ColumnMetadata("updated_at", ColumnType.DATETIME, "timestamp with time zone", True))
    return TableMetadata(
        name=name,
        columns=tuple(cols),
        foreign_keys=foreign_keys,
        referenced_by=referenced_by,
    )


def fk_info(table, column, reference_table, reference_column="id"):
    return ForeignKeyInfo(
        constraint_name=f"fk_{column}_{reference_table}_{reference_column}",
        table=table,
        column=column,
        reference_table=reference_table,
        reference_column=reference_column,
    )


@pytest.fixture
def generator():
    return DDLGenerator()


class TestCreateTable:
    """Test CREATE TABLE plans."""

    def test_create_table_with_managed_columns(self, generator):
        request = CreateTable(
            "users",
            [
                ColumnDefinition("id", ColumnType.UUID, nullable=False, primary_key=True),
                ColumnDefinition("name", ColumnType.STRING, nullable=False),
                ColumnDefinition("age", ColumnType.INTEGER),
            ],
        )

        plan = generator.generate(request)

        assert plan.statements[0].sql == (
            'CREATE TABLE "public"."users" (\n'
            '    "id" UUID PRIMARY KEY DEFAULT gen_random_uuid(),\n'
            '    "name" TEXT NOT NULL,\n'
            '    "age" INTEGER,\n'
            '    "created_at" TIMESTAMPTZ DEFAULT now(),\n'
            '    "updated_at" TIMESTAMPTZ DEFAULT now()\n'
            ")"
        )
        assert len(plan.statements) == 1
        assert plan.auto_fields == ["id", "created_at", "updated_at"]
        assert [c.name for c in plan.columns] == ["name", "age"]
        assert plan.operations == ["Created table: users"]
        assert plan.affected_tables == ["users"]

    def test_reserved_column_with_wrong_type_rejected(self, generator):
        request = CreateTable("users", [ColumnDefinition("created_at", ColumnType.STRING)])

        with pytest.raises(ValidationError, match="reserved field"):
            generator.generate(request)

    def test_table_needs_a_user_column(self, generator):
        request = CreateTable("users", [ColumnDefinition("id", ColumnType.UUID, nullable=False)])

        with pytest.raises(ValidationError, match="at least one user-defined column"):
            generator.generate(request)

    def test_duplicate_column_rejected(self, generator):
        request = CreateTable(
            "users",
            [ColumnDefinition("email", ColumnType.STRING), ColumnDefinition("email", ColumnType.STRING)],
        )

        with pytest.raises(ValidationError, match="Duplicate column name 'email'"):
            generator.generate(request)

    def test_non_id_primary_key_rejected(self, generator):
        request = CreateTable(
            "users", [ColumnDefinition("code", ColumnType.STRING, nullable=False, primary_key=True)]
        )

        with pytest.raises(ValidationError, match="cannot be a primary key"):
            generator.generate(request)

    def test_id_declared_as_primary_key_is_accepted(self, generator):
        request = CreateTable(
            "users",
            [
                ColumnDefinition("id", ColumnType.UUID, primary_key=True),
                ColumnDefinition("name", ColumnType.STRING, nullable=False),
            ],
        )

        plan = generator.generate(request)

        assert [c.name for c in plan.columns] == ["name"]
        assert '"id" UUID PRIMARY KEY DEFAULT gen_random_uuid()' in plan.statements[0].sql

    def test_reserved_timestamp_as_primary_key_rejected(self, generator):
        request = CreateTable(
            "users",
            [
                ColumnDefinition("created_at", ColumnType.DATETIME, primary_key=True),
                ColumnDefinition("name", ColumnType.STRING),
            ],
        )

        with pytest.raises(ValidationError, match="cannot be a primary key"):
            generator.generate(request)

    @pytest.mark.parametrize("table", ['users"; DROP TABLE x; --', "bad\nname", "", "_system"])
    def test_unsafe_table_name_generates_nothing(self, generator, table):
        request = CreateTable(table, [ColumnDefinition("name", ColumnType.STRING)])

        with pytest.raises(ValidationError):
            generator.generate(request)

    def test_unsafe_column_name_reports_index(self, generator):
        request = CreateTable(
            "users",
            [ColumnDefinition("ok", ColumnType.STRING), ColumnDefinition('x"y', ColumnType.STRING)],
        )

        with pytest.raises(ValidationError, match="index 1"):
            generator.generate(request)

    def test_defaults_are_quoted(self, generator):
        request = CreateTable(
            "users",
            [
                ColumnDefinition("status", ColumnType.STRING, default_value="it's new"),
                ColumnDefinition("seen_at", ColumnType.DATETIME, default_value="now()"),
                ColumnDefinition("active", ColumnType.BOOLEAN, nullable=False),
            ],
        )

        sql = generator.generate(request).statements[0].sql

        assert "\"status\" TEXT DEFAULT $val$it's new$val$" in sql
        assert '"seen_at" TIMESTAMPTZ DEFAULT now()' in sql
        assert '"active" BOOLEAN NOT NULL DEFAULT $val$false$val$' in sql

    def test_invalid_default_rejected(self, generator):
        request = CreateTable(
            "users", [ColumnDefinition("age", ColumnType.INTEGER, default_value="old")]
        )

        with pytest.raises(ValidationError, match="Invalid default value"):
            generator.generate(request)

    def test_unique_and_foreign_key_constraints(self, generator):
        request = CreateTable(
            "posts",
            [
                ColumnDefinition("slug", ColumnType.STRING, is_unique=True),
                ColumnDefinition(
                    "author_id",
                    ColumnType.UUID,
                    foreign_key=ForeignKey("users", "id", on_delete=ReferentialAction.CASCADE),
                ),
            ],
        )
        context = PlanContext(referenced={"users": make_table("users")})

        plan = generator.generate(request, context)

        sqls = [s.sql for s in plan.statements]
        assert 'ALTER TABLE "public"."posts" ADD CONSTRAINT "posts_slug_key" UNIQUE ("slug")' in sqls
        assert (
            'ALTER TABLE "public"."posts" ADD CONSTRAINT "fk_author_id_users_id" '
            'FOREIGN KEY ("author_id") REFERENCES "public"."users" ("id") '
            "ON DELETE CASCADE ON UPDATE RESTRICT"
        ) in sqls
        assert plan.operations == [
            "Created table: posts",
            "Added unique constraint on column: slug",
            "Added foreign key constraint on column: author_id",
        ]

    def test_unique_constraints_precede_foreign_keys(self, generator):
        request = CreateTable(
            "accounts",
            [
                ColumnDefinition(
                    "parent_code", ColumnType.STRING, foreign_key=ForeignKey("accounts", "code")
                ),
                ColumnDefinition("code", ColumnType.STRING, is_unique=True),
            ],
        )

        plan = generator.generate(request)

        assert plan.operations == [
            "Created table: accounts",
            "Added unique constraint on column: code",
            "Added foreign key constraint on column: parent_code",
        ]

    def test_empty_string_default_is_kept(self, generator):
        request = CreateTable("users", [ColumnDefinition("bio", ColumnType.STRING, default_value="")])

        sql = generator.generate(request).statements[0].sql

        assert '"bio" TEXT DEFAULT $val$$val$' in sql

    def test_foreign_key_type_mismatch_rejected(self, generator):
        request = CreateTable(
            "posts",
            [ColumnDefinition("author_id", ColumnType.INTEGER, foreign_key=ForeignKey("users", "id"))],
        )
        context = PlanContext(referenced={"users": make_table("users")})

        with pytest.raises(ValidationError, match="has type INTEGER"):
            generator.generate(request, context)

    def test_foreign_key_to_missing_table(self, generator):
        request = CreateTable(
            "posts",
            [ColumnDefinition("author_id", ColumnType.UUID, foreign_key=ForeignKey("users", "id"))],
        )

        with pytest.raises(NotFoundError) as exc_info:
            generator.generate(request, PlanContext())
        assert exc_info.value.name == "users"

    def test_foreign_key_to_missing_column(self, generator):
        request = CreateTable(
            "posts",
            [ColumnDefinition("author_id", ColumnType.UUID, foreign_key=ForeignKey("users", "uid"))],
        )
        context = PlanContext(referenced={"users": make_table("users")})

        with pytest.raises(NotFoundError, match="users.uid"):
            generator.generate(request, context)

    def test_self_reference_to_id(self, generator):
        request = CreateTable(
            "nodes",
            [ColumnDefinition("parent_id", ColumnType.UUID, foreign_key=ForeignKey("nodes", "id"))],
        )

        plan = generator.generate(request)

        assert any('REFERENCES "public"."nodes" ("id")' in s.sql for s in plan.statements)

    def test_foreign_key_cycle_rejected(self, generator):
        request = CreateTable(
            "nodes",
            [
                ColumnDefinition("a", ColumnType.STRING, foreign_key=ForeignKey("nodes", "b")),
                ColumnDefinition("b", ColumnType.STRING, foreign_key=ForeignKey("nodes", "a")),
            ],
        )

        with pytest.raises(ValidationError, match="reference cycle"):
            generator.generate(request)

    def test_set_null_on_non_nullable_column_rejected(self, generator):
        request = CreateTable(
            "posts",
            [
                ColumnDefinition(
                    "author_id",
                    ColumnType.UUID,
                    nullable=False,
                    foreign_key=ForeignKey("users", "id", on_delete=ReferentialAction.SET_NULL),
                )
            ],
        )

        with pytest.raises(ValidationError, match="SET NULL"):
            generator.generate(request, PlanContext(referenced={"users": make_table("users")}))

    def test_rls_trigger_and_notify(self):
        generator = DDLGenerator(
            notify_channel="pgrst", updated_at_trigger="set_updated_at", rls_default=True
        )

        plan = generator.generate(CreateTable("users", [ColumnDefinition("name", ColumnType.STRING)]))

        sqls = [s.sql for s in plan.statements]
        assert 'ALTER TABLE "public"."users" ENABLE ROW LEVEL SECURITY' in sqls
        assert (
            'CREATE TRIGGER "users_update_timestamp" BEFORE UPDATE ON "public"."users" '
            'FOR EACH ROW EXECUTE FUNCTION "set_updated_at"()'
        ) in sqls
        assert sqls[-1] == "NOTIFY \"pgrst\", 'reload schema'"

    def test_request_rls_overrides_default(self):
        generator = DDLGenerator(rls_default=True)

        plan = generator.generate(
            CreateTable("users", [ColumnDefinition("name", ColumnType.STRING)], rls=False)
        )

        assert not any("ROW LEVEL SECURITY" in s.sql for s in plan.statements)


class TestAlterTable:
    """Test composite ALTER TABLE plans."""

    def test_missing_table(self, generator):
        request = AlterTable("users", [AddColumns([ColumnDefinition("email", ColumnType.STRING)])])

        with pytest.raises(NotFoundError, match="Table 'users' not found"):
            generator.generate(request, PlanContext())

    def test_no_changes_rejected(self, generator):
        with pytest.raises(ValidationError, match="No changes"):
            generator.generate(AlterTable("users", []), PlanContext(target=make_table("users")))

    def test_changes_run_in_dependency_order(self, generator):
        target = make_table(
            "users",
            [("nickname", "text"), ("old_name", "text"), ("team_id", "uuid")],
            foreign_keys=(fk_info("users", "team_id", "teams"),),
        )
        request = AlterTable(
            "users",
            [
                AddColumns([ColumnDefinition("email", ColumnType.STRING)]),
                RenameColumns({"old_name": "full_name"}),
                DropColumns(["nickname"]),
                DropForeignKeyColumns(["team_id"]),
            ],
        )

        plan = generator.generate(request, PlanContext(target=target))

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."users" DROP CONSTRAINT "fk_team_id_teams_id"',
            'ALTER TABLE "public"."users" DROP COLUMN "team_id"',
            'ALTER TABLE "public"."users" DROP COLUMN "nickname"',
            'ALTER TABLE "public"."users" RENAME COLUMN "old_name" TO "full_name"',
            'ALTER TABLE "public"."users" ADD COLUMN "email" TEXT',
        ]
        assert plan.operations == [
            "Dropped foreign key constraint on column: team_id",
            "Dropped column: team_id",
            "Dropped column: nickname",
            "Renamed column: old_name -> full_name",
            "Added column: email",
        ]
        assert plan.affected_tables == ["users", "teams"]

    def test_not_null_add_uses_caller_default_then_drops_it(self, generator):
        request = AlterTable(
            "users",
            [
                AddColumns(
                    [
                        ColumnDefinition(
                            "plan",
                            ColumnType.STRING,
                            nullable=False,
                            default_value="free",
                            persist_default=False,
                        )
                    ]
                )
            ],
        )

        plan = generator.generate(request, PlanContext(target=make_table("users"), has_rows=True))

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."users" ADD COLUMN "plan" TEXT NOT NULL DEFAULT $val$free$val$',
            'ALTER TABLE "public"."users" ALTER COLUMN "plan" DROP DEFAULT',
        ]
        assert plan.operations == ["Added column: plan"]

    def test_not_null_add_keeps_caller_default(self, generator):
        request = AlterTable(
            "users",
            [AddColumns([ColumnDefinition("plan", ColumnType.STRING, nullable=False, default_value="free")])],
        )

        plan = generator.generate(request, PlanContext(target=make_table("users"), has_rows=True))

        assert len(plan.statements) == 1

    def test_not_null_add_uses_type_default(self, generator):
        request = AlterTable(
            "users", [AddColumns([ColumnDefinition("active", ColumnType.BOOLEAN, nullable=False)])]
        )

        plan = generator.generate(request, PlanContext(target=make_table("users"), has_rows=True))

        assert plan.statements[0].sql == (
            'ALTER TABLE "public"."users" ADD COLUMN "active" BOOLEAN NOT NULL DEFAULT $val$false$val$'
        )

    def test_not_null_add_without_default_on_non_empty_table(self, generator):
        request = AlterTable(
            "users", [AddColumns([ColumnDefinition("email", ColumnType.STRING, nullable=False)])]
        )

        with pytest.raises(ValidationError, match="already contains rows") as exc_info:
            generator.generate(request, PlanContext(target=make_table("users"), has_rows=True))
        assert exc_info.value.field == "email"

    def test_not_null_add_without_default_on_empty_table(self, generator):
        request = AlterTable(
            "users", [AddColumns([ColumnDefinition("email", ColumnType.STRING, nullable=False)])]
        )

        plan = generator.generate(request, PlanContext(target=make_table("users"), has_rows=False))

        assert plan.statements[0].sql == 'ALTER TABLE "public"."users" ADD COLUMN "email" TEXT NOT NULL'

    def test_add_fkey_columns(self, generator):
        request = AlterTable(
            "posts",
            [AddForeignKeyColumns([ColumnDefinition("owner_id", ColumnType.UUID, foreign_key=ForeignKey("owners", "id"))])],
        )
        context = PlanContext(target=make_table("posts"), referenced={"owners": make_table("owners")})

        plan = generator.generate(request, context)

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."posts" ADD COLUMN "owner_id" UUID',
            'ALTER TABLE "public"."posts" ADD CONSTRAINT "fk_owner_id_owners_id" FOREIGN KEY ("owner_id") '
            'REFERENCES "public"."owners" ("id") ON DELETE RESTRICT ON UPDATE RESTRICT',
        ]
        assert plan.affected_tables == ["posts", "owners"]

    def test_add_fkey_column_requires_foreign_key(self, generator):
        request = AlterTable("posts", [AddForeignKeyColumns([ColumnDefinition("owner_id", ColumnType.UUID)])])

        with pytest.raises(ValidationError, match="has no foreign_key"):
            generator.generate(request, PlanContext(target=make_table("posts")))

    def test_foreign_key_type_checked_against_live_column(self, generator):
        owners = make_table("owners", [("code", "integer")])
        request = AlterTable(
            "posts",
            [AddColumns([ColumnDefinition("owner_code", ColumnType.STRING, foreign_key=ForeignKey("owners", "code"))])],
        )

        with pytest.raises(ValidationError, match="has type TEXT"):
            generator.generate(request, PlanContext(target=make_table("posts"), referenced={"owners": owners}))

    def test_drop_fkey_column_without_constraint(self, generator):
        request = AlterTable("posts", [DropForeignKeyColumns(["owner_id"])])
        context = PlanContext(target=make_table("posts", [("title", "text"), ("owner_id", "uuid")]))

        with pytest.raises(NotFoundError, match="no foreign key constraint"):
            generator.generate(request, context)

    def test_drop_referenced_column_is_constraint_violation(self, generator):
        target = make_table(
            "users",
            [("email", "text")],
            referenced_by=(fk_info("invites", "user_email", "users", "email"),),
        )
        request = AlterTable("users", [DropColumns(["email"])])

        with pytest.raises(ConstraintViolation) as exc_info:
            generator.generate(request, PlanContext(target=target))

        assert exc_info.value.constraint_name == "fk_user_email_users_email"
        assert exc_info.value.field == "email"
        assert "invites.user_email" in exc_info.value.hint

    def test_drop_self_referencing_pair_together(self, generator):
        target = make_table(
            "nodes",
            [("label", "text"), ("code", "text"), ("parent_code", "text")],
            foreign_keys=(fk_info("nodes", "parent_code", "nodes", "code"),),
            referenced_by=(fk_info("nodes", "parent_code", "nodes", "code"),),
        )
        request = AlterTable("nodes", [DropForeignKeyColumns(["parent_code"]), DropColumns(["code"])])

        plan = generator.generate(request, PlanContext(target=target))

        assert plan.statements[-1].sql == 'ALTER TABLE "public"."nodes" DROP COLUMN "code"'

    @pytest.mark.parametrize(
        "change",
        [DropColumns(["id"]), RenameColumns({"created_at": "born"}), RenameColumns({"name": "updated_at"})],
    )
    def test_reserved_columns_cannot_be_dropped_or_renamed(self, generator, change):
        with pytest.raises(ValidationError, match="system column"):
            generator.generate(AlterTable("users", [change]), PlanContext(target=make_table("users")))

    def test_drop_and_rename_same_column_rejected(self, generator):
        request = AlterTable("users", [DropColumns(["name"]), RenameColumns({"name": "full_name"})])

        with pytest.raises(ValidationError, match="both dropped and renamed"):
            generator.generate(request, PlanContext(target=make_table("users", [("name", "text")])))

    def test_rename_target_collides_with_added_column(self, generator):
        request = AlterTable(
            "users",
            [RenameColumns({"name": "email"}), AddColumns([ColumnDefinition("email", ColumnType.STRING)])],
        )

        with pytest.raises(ValidationError, match="Duplicate column name 'email'"):
            generator.generate(request, PlanContext(target=make_table("users", [("name", "text")])))

    def test_dropping_last_user_column_rejected(self, generator):
        target = make_table("users", [("email", "text")])

        with pytest.raises(ValidationError, match="at least one user-defined column after update"):
            generator.generate(AlterTable("users", [DropColumns(["email"])]), PlanContext(target=target))

    def test_replacing_last_user_column_in_one_request(self, generator):
        target = make_table("users", [("email", "text")])
        request = AlterTable(
            "users",
            [DropColumns(["email"]), AddColumns([ColumnDefinition("contact", ColumnType.STRING)])],
        )

        plan = generator.generate(request, PlanContext(target=target))

        assert plan.operations == ["Dropped column: email", "Added column: contact"]

    def test_foreign_key_to_column_dropped_in_same_request(self, generator):
        target = make_table("users", [("name", "text"), ("email", "text")])
        request = AlterTable(
            "users",
            [
                DropColumns(["email"]),
                AddForeignKeyColumns(
                    [ColumnDefinition("buddy", ColumnType.STRING, foreign_key=ForeignKey("users", "email"))]
                ),
            ],
        )

        with pytest.raises(NotFoundError, match="users.email") as exc_info:
            generator.generate(request, PlanContext(target=target))
        assert exc_info.value.name == "email"

    def test_foreign_key_to_old_name_of_renamed_column(self, generator):
        target = make_table("users", [("email", "text")])
        request = AlterTable(
            "users",
            [
                RenameColumns({"email": "contact"}),
                AddForeignKeyColumns(
                    [ColumnDefinition("buddy", ColumnType.STRING, foreign_key=ForeignKey("users", "email"))]
                ),
            ],
        )

        with pytest.raises(NotFoundError, match="users.email"):
            generator.generate(request, PlanContext(target=target))

    def test_foreign_key_to_new_name_of_renamed_column(self, generator):
        target = make_table("users", [("email", "text")])
        request = AlterTable(
            "users",
            [
                RenameColumns({"email": "contact"}),
                AddForeignKeyColumns(
                    [ColumnDefinition("buddy", ColumnType.STRING, foreign_key=ForeignKey("users", "contact"))]
                ),
            ],
        )

        plan = generator.generate(request, PlanContext(target=target))

        assert plan.statements[-1].sql.endswith(
            'REFERENCES "public"."users" ("contact") ON DELETE RESTRICT ON UPDATE RESTRICT'
        )

    def test_added_unique_column_constrained_before_foreign_keys(self, generator):
        request = AlterTable(
            "accounts",
            [
                AddForeignKeyColumns(
                    [ColumnDefinition("parent_code", ColumnType.STRING, foreign_key=ForeignKey("accounts", "code"))]
                ),
                AddColumns([ColumnDefinition("code", ColumnType.STRING, is_unique=True)]),
            ],
        )

        plan = generator.generate(request, PlanContext(target=make_table("accounts", [("name", "text")])))

        assert plan.operations == [
            "Added column: code",
            "Added column: parent_code",
            "Added unique constraint on column: code",
            "Added foreign key constraint on column: parent_code",
        ]


class TestUpdateColumns:
    """Changing defaults of existing columns."""

    def test_set_and_drop_defaults(self, generator):
        target = make_table("users", [("status", "text"), ("age", "integer")])
        request = AlterTable("users", [UpdateColumns({"status": "active", "age": None})])

        plan = generator.generate(request, PlanContext(target=target))

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."users" ALTER COLUMN "status" SET DEFAULT $val$active$val$',
            'ALTER TABLE "public"."users" ALTER COLUMN "age" DROP DEFAULT',
        ]
        assert plan.operations == ["Updated column: status", "Updated column: age"]

    def test_default_checked_against_column_type(self, generator):
        target = make_table("users", [("age", "integer")])

        with pytest.raises(ValidationError, match="Invalid default value"):
            generator.generate(
                AlterTable("users", [UpdateColumns({"age": "old"})]), PlanContext(target=target)
            )

    def test_update_uses_renamed_column_name(self, generator):
        target = make_table("users", [("state", "text")])
        request = AlterTable(
            "users", [UpdateColumns({"status": "new"}), RenameColumns({"state": "status"})]
        )

        plan = generator.generate(request, PlanContext(target=target))

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."users" RENAME COLUMN "state" TO "status"',
            'ALTER TABLE "public"."users" ALTER COLUMN "status" SET DEFAULT $val$new$val$',
        ]

    def test_update_missing_column(self, generator):
        target = make_table("users", [("name", "text")])

        with pytest.raises(NotFoundError, match="Column 'status' not found"):
            generator.generate(
                AlterTable("users", [UpdateColumns({"status": "x"})]), PlanContext(target=target)
            )

    def test_update_system_column_rejected(self, generator):
        with pytest.raises(ValidationError, match="Cannot update system column 'created_at'"):
            generator.generate(
                AlterTable("users", [UpdateColumns({"created_at": None})]),
                PlanContext(target=make_table("users", [("name", "text")])),
            )

    def test_update_and_drop_same_column_rejected(self, generator):
        request = AlterTable("users", [DropColumns(["name"]), UpdateColumns({"name": "x"})])

        with pytest.raises(ValidationError, match="both dropped and updated"):
            generator.generate(request, PlanContext(target=make_table("users", [("name", "text")])))


class TestRenameTable:
    def test_rename_runs_last(self, generator):
        target = make_table(
            "people",
            [("name", "text")],
            referenced_by=(fk_info("posts", "author_id", "people"),),
        )
        request = AlterTable(
            "people",
            [RenameTable("members"), AddColumns([ColumnDefinition("email", ColumnType.STRING)])],
        )

        plan = generator.generate(request, PlanContext(target=target))

        assert [s.sql for s in plan.statements] == [
            'ALTER TABLE "public"."people" ADD COLUMN "email" TEXT',
            'ALTER TABLE "public"."people" RENAME TO "members"',
        ]
        assert plan.operations[-1] == "Renamed table: people -> members"
        assert plan.table_name == "members"
        assert plan.affected_tables == ["people", "members", "posts"]

    def test_rename_to_system_table_rejected(self, generator):
        request = AlterTable("people", [RenameTable("_people")])

        with pytest.raises(ValidationError, match="Cannot rename table 'people'") as exc_info:
            generator.generate(request, PlanContext(target=make_table("people", [("name", "text")])))
        assert exc_info.value.field == "rename_table"

    def test_rename_to_same_name_rejected(self, generator):
        with pytest.raises(ValidationError, match="already has that name"):
            generator.generate(
                AlterTable("people", [RenameTable("people")]),
                PlanContext(target=make_table("people", [("name", "text")])),
            )

    def test_rename_twice_rejected(self, generator):
        request = AlterTable("people", [RenameTable("members"), RenameTable("folks")])

        with pytest.raises(ValidationError, match="renamed once"):
            generator.generate(request, PlanContext(target=make_table("people", [("name", "text")])))


class TestDropTable:
    def test_drop_table_cascades_and_lists_dependents(self, generator):
        target = make_table(
            "users",
            referenced_by=(fk_info("posts", "author_id", "users"), fk_info("users", "manager_id", "users")),
        )

        plan = generator.generate(DropTable("users"), PlanContext(target=target))

        assert [s.sql for s in plan.statements] == ['DROP TABLE "public"."users" CASCADE']
        assert plan.operations == ["Dropped table: users"]
        assert plan.affected_tables == ["users", "posts"]

    def test_drop_missing_table(self, generator):
        with pytest.raises(NotFoundError):
            generator.generate(DropTable("ghosts"), PlanContext())

    def test_drop_system_table_rejected(self, generator):
        with pytest.raises(ValidationError):
            generator.generate(DropTable("_migrations"), PlanContext(target=make_table("_migrations")))


class TestPlanOutput:
    def test_sql_joins_statements(self, generator):
        plan = generator.generate(DropTable("users"), PlanContext(target=make_table("users")))
        assert plan.sql() == 'DROP TABLE "public"."users" CASCADE;'

    def test_custom_schema_is_quoted(self):
        generator = DDLGenerator(schema="tenant one")
        plan = generator.generate(CreateTable("users", [ColumnDefinition("name", ColumnType.STRING)]))
        assert plan.statements[0].sql.startswith('CREATE TABLE "tenant one"."users" (')
