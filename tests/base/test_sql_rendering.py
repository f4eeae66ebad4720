import pytest

from async_sql_store import SqliteExecutor
from async_sql_store.base.errors import DbErrorKind, ExecutorError
from async_sql_store.base.interfaces import Predicate


# --- TableQuery builder ---


def test_builder_returns_new_handles(capturing_executor):
    base = capturing_executor.table("users")
    filtered = base.where("age", ">", 3).order_by("age", "desc")

    assert base.predicates == ()
    assert base.order is None
    assert filtered.predicates == (Predicate("where", "age", ">", 3),)
    assert filtered.order == ("age", "DESC")


def test_query_dispatches_clauses(capturing_executor):
    handle = (
        capturing_executor.table("users")
        .query("where", "user_name", "ilike", "%al%")
        .query("whereIn", "id", ("a", "b"))
    )
    assert handle.predicates == (
        Predicate("where", "user_name", "ILIKE", "%al%"),
        Predicate("whereIn", "id", None, ["a", "b"]),
    )


@pytest.mark.parametrize(
    "clause, args",
    [
        ("orWhere", ("=", 1)),
        ("where", ("=",)),
        ("where", ("~~", 1)),
        ("whereIn", ("a", "b")),
        ("whereIn", ("ab",)),
    ],
)
def test_query_rejects_malformed_clauses(capturing_executor, clause, args):
    with pytest.raises(ValueError):
        capturing_executor.table("users").query(clause, "col", *args)


def test_order_by_rejects_unknown_direction(capturing_executor):
    with pytest.raises(ValueError):
        capturing_executor.table("users").order_by("age", "sideways")


# --- Rendering ---


async def test_fetch_all_renders_where_and_order(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1"}])
    query = executor.table("users").where("age", ">", 3).where("status", "=", "active")

    rows = await query.order_by("age", "DESC").fetch_all()

    assert rows == [{"id": "u1"}]
    assert executor.statements == [
        (
            'SELECT * FROM "users" WHERE "age" > $1 AND "status" = $2 ORDER BY "age" DESC',
            [3, "active"],
        )
    ]


async def test_null_comparisons(capturing_executor):
    query = capturing_executor.table("users").where("email", "=", None).where("age", "!=", None)

    await query.fetch_all()

    assert capturing_executor.statements == [
        ('SELECT * FROM "users" WHERE "email" IS NULL AND "age" IS NOT NULL', [])
    ]


async def test_null_with_ordering_operator_is_rejected(capturing_executor):
    with pytest.raises(ExecutorError) as exc_info:
        await capturing_executor.table("users").where("age", ">", None).fetch_all()

    assert isinstance(exc_info.value.error.original, ValueError)
    assert capturing_executor.statements == []


async def test_where_in(capturing_executor):
    await capturing_executor.table("users").where_in("id", ["a", "b"]).fetch_all()
    assert capturing_executor.statements == [
        ('SELECT * FROM "users" WHERE "id" IN ($1, $2)', ["a", "b"])
    ]


async def test_empty_where_in_matches_nothing(capturing_executor):
    await capturing_executor.table("users").where_in("id", []).fetch_all()
    assert capturing_executor.statements == [('SELECT * FROM "users" WHERE 1=0', [])]


async def test_schema_and_identifier_quoting(capturing_executor):
    await capturing_executor.table("users", schema="app").where('we"ird', "=", 1).fetch_all()
    assert capturing_executor.statements == [
        ('SELECT * FROM "app"."users" WHERE "we""ird" = $1', [1])
    ]


async def test_fetch_page_counts_then_selects(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u3"}], value=25)
    query = executor.table("users").where("status", "=", "active").order_by("id")

    rows, row_count = await query.fetch_page(limit=2, offset=4)

    assert rows == [{"id": "u3"}]
    assert row_count == 25
    assert executor.statements == [
        ('SELECT COUNT(*) FROM "users" WHERE "status" = $1', ["active"]),
        (
            'SELECT * FROM "users" WHERE "status" = $1 ORDER BY "id" ASC LIMIT $2 OFFSET $3',
            ["active", 2, 4],
        ),
    ]


async def test_fetch_page_without_offset(make_capturing_executor):
    executor = make_capturing_executor(value=0)

    rows, row_count = await executor.table("users").fetch_page(limit=5)

    assert (rows, row_count) == ([], 0)
    assert executor.statements[1] == ('SELECT * FROM "users" LIMIT $1', [5])


async def test_fetch_one_limits_to_one_row(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1"}])

    row = await executor.table("users").where("id", "=", "u1").fetch_one()

    assert row == {"id": "u1"}
    assert executor.statements == [('SELECT * FROM "users" WHERE "id" = $1 LIMIT $2', ["u1", 1])]


async def test_fetch_one_missing_row(capturing_executor):
    query = capturing_executor.table("users").where("id", "=", "nope")

    assert await query.fetch_one(require=False) is None
    with pytest.raises(ExecutorError) as exc_info:
        await query.fetch_one()
    assert exc_info.value.error.kind is DbErrorKind.NOT_FOUND


async def test_insert(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1", "user_name": "alice"}])

    row = await executor.table("users").insert({"id": "u1", "user_name": "alice"})

    assert row == {"id": "u1", "user_name": "alice"}
    assert executor.statements == [
        ('INSERT INTO "users" ("id", "user_name") VALUES ($1, $2) RETURNING *', ["u1", "alice"])
    ]


async def test_insert_empty_row_uses_defaults(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "generated"}])
    await executor.table("users").insert({})
    assert executor.statements == [('INSERT INTO "users" DEFAULT VALUES RETURNING *', [])]


async def test_update_sets_only_given_columns(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1", "age": 32}])

    row = await executor.table("users").where("id", "=", "u1").update({"age": 32})

    assert row == {"id": "u1", "age": 32}
    assert executor.statements == [
        ('UPDATE "users" SET "age" = $1 WHERE "id" = $2 RETURNING *', [32, "u1"])
    ]


async def test_update_without_match(capturing_executor):
    with pytest.raises(ExecutorError) as exc_info:
        await capturing_executor.table("users").where("id", "=", "u1").update({"age": 1})
    assert exc_info.value.error.kind is DbErrorKind.NO_ROWS_AFFECTED


async def test_empty_update_reads_the_current_row(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1"}])

    row = await executor.table("users").where("id", "=", "u1").update({})

    assert row == {"id": "u1"}
    assert executor.statements[0][0].startswith("SELECT")


async def test_delete_returns_removed_row(make_capturing_executor):
    executor = make_capturing_executor(rows=[{"id": "u1"}])

    row = await executor.table("users").where("id", "=", "u1").delete()

    assert row == {"id": "u1"}
    assert executor.statements == [('DELETE FROM "users" WHERE "id" = $1 RETURNING *', ["u1"])]


async def test_delete_requires_a_filter(capturing_executor):
    with pytest.raises(ExecutorError) as exc_info:
        await capturing_executor.table("users").delete()

    assert isinstance(exc_info.value.error.original, ValueError)
    assert capturing_executor.statements == []


async def test_driver_errors_are_normalized(make_capturing_executor, unique_violation):
    executor = make_capturing_executor(error=unique_violation("users:unique:email"))

    with pytest.raises(ExecutorError) as exc_info:
        await executor.table("users").insert({"email": "a@example.com"})

    error = exc_info.value.error
    assert error.kind is DbErrorKind.UNIQUE_VIOLATION
    assert error.constraint == "users:unique:email"
    assert exc_info.value.__cause__ is error.original


# --- Dialects ---


async def test_sqlite_dialect(sqlite_memory_db_conn):
    executor = SqliteExecutor(sqlite_memory_db_conn)

    assert executor.placeholder(3) == "?"
    assert executor.sql_operator("ILIKE") == "LIKE"
    assert executor.sql_operator("NOT ILIKE") == "NOT LIKE"
    assert executor.sql_operator("=") == "="


def test_sqlite_executor_requires_a_connection():
    with pytest.raises(TypeError):
        SqliteExecutor(object())
