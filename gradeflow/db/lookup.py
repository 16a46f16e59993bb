from typing import Dict, Iterable, List

from gradeflow.db.supabase import run_query


def unique_ids(ids: Iterable) -> List:
    """Drop falsy ids and duplicates, keeping first-seen order."""
    return [value for value in dict.fromkeys(ids) if value]


def batch_lookup(client, table: str, ids: Iterable, columns: str = "*", key: str = "id") -> Dict[str, dict]:
    """
    Fetch the rows of `table` whose `key` is in `ids` with a single `in_`
    query and return them keyed by that column.

    Used wherever a workflow has a list of foreign keys and needs the
    referenced rows (students for enrollments, profiles for teachers, ...).
    An empty id list returns an empty map without touching the network.
    """
    wanted = unique_ids(ids)
    if not wanted:
        return {}

    rows = run_query(
        client.table(table).select(columns).in_(key, wanted),
        f"load {table}",
    )
    return {row[key]: row for row in rows}
