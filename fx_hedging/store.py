"""
ScenarioStore — SQLite key/value store for the desk's caller-held state.

Values are zipped pickles (pickle + zlib) in a single SQLite table, keyed by
path-like strings:

    /Config/<key>            CLI defaults (paths, seed, closed-form flag, ...)
    /Overrides/<kind>        forwards, real_prices, implied_vols, custom_option_prices
    /Scenarios/<name>        saved calculations: inputs plus results

The pricing core never touches the store; only the CLI reads and writes it.

NOTE: pickle is used intentionally here. Only open stores you wrote yourself.
"""

import json
import logging
import pickle
import sqlite3
import time
import zlib

from fx_hedging.params import Overrides

logger = logging.getLogger(__name__)

OVERRIDE_KINDS = ("forwards", "real_prices", "implied_vols", "custom_option_prices")


class ScenarioStore:
    """
    Usage:
        store = ScenarioStore.open("hedge_desk.db")
        store["/Config/barrier_paths"] = 5000
        store.save_scenario("collar-q3", {"params": ..., "results": ...})
    """

    def __init__(self, conn):
        self._conn = conn
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS entries ("
            "  key TEXT PRIMARY KEY,"
            "  value BLOB NOT NULL,"
            "  metadata TEXT,"
            "  updated_at REAL"
            ")"
        )
        self._conn.commit()

    @classmethod
    def open(cls, db_path=":memory:"):
        conn = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        return cls(conn)

    # ── Raw key/value access ─────────────────────────────────────────────

    def put(self, key, value, metadata=None):
        blob = zlib.compress(pickle.dumps(value))
        meta_json = json.dumps(metadata) if metadata else None
        self._conn.execute(
            "INSERT OR REPLACE INTO entries (key, value, metadata, updated_at) "
            "VALUES (?, ?, ?, ?)",
            (key, blob, meta_json, time.time()),
        )
        self._conn.commit()

    def __setitem__(self, key, value):
        self.put(key, value)

    def __getitem__(self, key):
        row = self._conn.execute(
            "SELECT value FROM entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            raise KeyError(key)
        return pickle.loads(zlib.decompress(row[0]))

    def __contains__(self, key):
        row = self._conn.execute(
            "SELECT 1 FROM entries WHERE key = ?", (key,)
        ).fetchone()
        return row is not None

    def __delitem__(self, key):
        self._conn.execute("DELETE FROM entries WHERE key = ?", (key,))
        self._conn.commit()

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def keys(self, prefix=""):
        cur = self._conn.execute(
            "SELECT key FROM entries WHERE key LIKE ? ORDER BY key", (prefix + "%",)
        )
        return [row[0] for row in cur]

    def get_metadata(self, key):
        row = self._conn.execute(
            "SELECT metadata, updated_at FROM entries WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        meta = json.loads(row[0]) if row[0] else {}
        meta["updated_at"] = row[1]
        return meta

    def close(self):
        self._conn.close()

    # ── Config ───────────────────────────────────────────────────────────

    def seed_config(self, defaults):
        """Write any default config value that is not stored yet."""
        for key, value in defaults.items():
            if f"/Config/{key}" not in self:
                self[f"/Config/{key}"] = value

    def load_config(self, defaults):
        return {key: self.get(f"/Config/{key}", value) for key, value in defaults.items()}

    # ── Overrides ────────────────────────────────────────────────────────

    def save_overrides(self, overrides):
        for kind in OVERRIDE_KINDS:
            self[f"/Overrides/{kind}"] = dict(getattr(overrides, kind))
        self["/Overrides/use_implied_vol"] = overrides.use_implied_vol

    def load_overrides(self):
        data = {kind: self.get(f"/Overrides/{kind}", {}) for kind in OVERRIDE_KINDS}
        data["use_implied_vol"] = self.get("/Overrides/use_implied_vol", False)
        return Overrides.from_dict(data)

    def clear_overrides(self, kind=None):
        kinds = [kind] if kind else list(OVERRIDE_KINDS) + ["use_implied_vol"]
        for k in kinds:
            if f"/Overrides/{k}" in self:
                del self[f"/Overrides/{k}"]

    # ── Saved scenarios ──────────────────────────────────────────────────

    def save_scenario(self, name, payload, description=None):
        self.put(f"/Scenarios/{name}", payload,
                 metadata={"description": description} if description else None)
        logger.info(f"Saved scenario {name}")

    def load_scenario(self, name):
        return self[f"/Scenarios/{name}"]

    def delete_scenario(self, name):
        del self[f"/Scenarios/{name}"]

    def list_scenarios(self):
        return [key[len("/Scenarios/"):] for key in self.keys("/Scenarios/")]

    def __repr__(self):
        return f"ScenarioStore(entries={len(self.keys())})"
