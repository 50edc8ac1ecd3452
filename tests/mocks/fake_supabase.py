"""In-memory stand-in for the supabase-py client used in tests."""

import copy
import datetime
import itertools
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from postgrest.exceptions import APIError

_BASE_TIME = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

USER_ID = "user-1"
OTHER_ID = "user-2"
ADMIN_ID = "admin-1"


class FakeResponse:
    def __init__(self, data: Any, count: Optional[int] = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Records a fluent query chain and evaluates it against the owning FakeSupabase."""

    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self.client = client
        self.table_name = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[Callable[[dict], bool]] = []
        self.orders: List[tuple] = []
        self.max_rows: Optional[int] = None
        self.offset = 0
        self.want_count = False
        self.want_single = False

    # -- builders -------------------------------------------------------
    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.want_count = count == "exact"
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload: Any, on_conflict: Optional[str] = None) -> "FakeQuery":
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, values: Dict[str, Any]) -> "FakeQuery":
        self.op, self.payload = "update", values
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column: str, values: List[Any]) -> "FakeQuery":
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.max_rows = n
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.offset, self.max_rows = start, end - start + 1
        return self

    def single(self) -> "FakeQuery":
        self.want_single = True
        return self

    # -- evaluation -----------------------------------------------------
    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self) -> FakeResponse:
        self.client.calls.append((self.table_name, self.op))
        err = self.client.failures.get((self.table_name, self.op)) or self.client.failures.get(self.table_name)
        if err is not None:
            raise err

        rows = self.client.tables.setdefault(self.table_name, [])
        if self.op == "insert":
            new = [self.client._stamp(self.table_name, r) for r in _as_list(self.payload)]
            rows.extend(new)
            return FakeResponse(copy.deepcopy(new))
        if self.op == "upsert":
            return FakeResponse(copy.deepcopy(self._upsert(rows)))
        if self.op == "update":
            hit = [r for r in rows if self._matches(r)]
            for r in hit:
                r.update(self.payload)
            return FakeResponse(copy.deepcopy(hit))
        if self.op == "delete":
            hit = [r for r in rows if self._matches(r)]
            self.client.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(copy.deepcopy(hit))

        hit = [r for r in rows if self._matches(r)]
        for column, desc in reversed(self.orders):
            hit.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        total = len(hit)
        hit = hit[self.offset:]
        if self.max_rows is not None:
            hit = hit[: self.max_rows]
        data: Any = copy.deepcopy(hit)
        if self.want_single:
            if len(data) != 1:
                raise APIError({"message": "JSON object requested, multiple (or no) rows returned", "code": "PGRST116"})
            data = data[0]
        return FakeResponse(data, total if self.want_count else None)

    def _upsert(self, rows: List[dict]) -> List[dict]:
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        out = []
        for payload in _as_list(self.payload):
            existing = next((r for r in rows if all(r.get(k) == payload.get(k) for k in keys)), None)
            if existing is not None:
                existing.update(payload)
                out.append(existing)
            else:
                row = self.client._stamp(self.table_name, payload)
                rows.append(row)
                out.append(row)
        return out


def _as_list(payload: Any) -> List[dict]:
    return list(payload) if isinstance(payload, list) else [payload]


class FakeRPC:
    def __init__(self, client: "FakeSupabase", name: str, params: Dict[str, Any]) -> None:
        self.client, self.name, self.params = client, name, params

    def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.name, self.params))
        err = self.client.failures.get(("rpc", self.name))
        if err is not None:
            raise err
        if self.name == "grant_admin_role":
            self.client.table("user_roles").upsert(
                {
                    "user_id": self.params["target_user_id"],
                    "role": "admin",
                    "is_active": True,
                    "granted_by": self.params["granted_by_user_id"],
                    "expires_at": None,
                },
                on_conflict="user_id,role",
            ).execute()
            return FakeResponse(True)
        return FakeResponse(None)


class FakeAdminAuth:
    def __init__(self, client: "FakeSupabase") -> None:
        self.client = client

    def list_users(self) -> List[SimpleNamespace]:
        return [SimpleNamespace(**u) for u in self.client.users]


class FakeAuth:
    def __init__(self, client: "FakeSupabase") -> None:
        self.client = client
        self.admin = FakeAdminAuth(client)

    def get_user(self, token: str) -> SimpleNamespace:
        user_id = self.client.tokens.get(token)
        if user_id is None:
            raise APIError({"message": "invalid JWT", "code": "401"})
        user = next((u for u in self.client.users if u["id"] == user_id), {"id": user_id, "email": None})
        return SimpleNamespace(user=SimpleNamespace(**user))


class FakeSupabase:
    """
    Enough of supabase.Client for the service: table queries, rpc, and auth.

    `failures` maps a table name, a (table, op) pair, or ("rpc", name) to an
    exception raised on execute.
    """

    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None,
                 users: Optional[List[dict]] = None,
                 tokens: Optional[Dict[str, str]] = None) -> None:
        self.tables: Dict[str, List[dict]] = copy.deepcopy(tables or {})
        self.users: List[dict] = list(users or [])
        self.tokens: Dict[str, str] = dict(tokens or {})
        self.failures: Dict[Any, Exception] = {}
        self.calls: List[tuple] = []
        self.rpc_calls: List[tuple] = []
        self.auth = FakeAuth(self)
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRPC:
        return FakeRPC(self, name, params)

    def _stamp(self, table: str, payload: dict) -> dict:
        row = dict(payload)
        row.setdefault("id", f"{table}-{next(self._ids)}")
        row.setdefault("created_at", (_BASE_TIME + datetime.timedelta(minutes=next(self._clock))).isoformat())
        return row

    def rows(self, table: str) -> List[dict]:
        return self.tables.get(table, [])
