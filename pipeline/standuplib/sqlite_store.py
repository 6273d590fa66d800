"""SQLite standup record store.

Database counterpart of the file store: one row per (date_key, username),
upserted in a single transaction so the dated record and the latest record
can never disagree.
"""

from __future__ import annotations

import json
import os
import sqlite3

from standuplib.errors import StorageError
from standuplib.models import StandupRecord
from standuplib.record_store import DEFAULT_HISTORY_LIMIT
from standuplib.record_store import RecordStore
from standuplib.record_store import validate_date_key

DEFAULT_DB_NAME = "standups.sqlite3"


#============================================
class SqliteRecordStore(RecordStore):
	"""
	Standup records in a local SQLite database file.
	"""

	def __init__(self, db_path: str, table_name: str = "standups"):
		self.db_path = os.path.abspath(db_path)
		if not table_name.isidentifier():
			raise StorageError(f"Invalid table name: {table_name!r}")
		self.table_name = table_name
		self._schema_ready = False

	#============================================
	def _connect(self) -> sqlite3.Connection:
		"""
		Open a connection, creating the database and schema on first use.
		"""
		os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
		conn = sqlite3.connect(self.db_path)
		if not self._schema_ready:
			with conn:
				conn.execute(
					f"""
					CREATE TABLE IF NOT EXISTS {self.table_name} (
						date_key TEXT NOT NULL,
						username TEXT NOT NULL,
						generated_at TEXT NOT NULL,
						payload TEXT NOT NULL,
						PRIMARY KEY (date_key, username)
					)
				"""
				)
				conn.execute(
					f"""
					CREATE INDEX IF NOT EXISTS idx_{self.table_name}_recent
					ON {self.table_name}(date_key, generated_at)
				"""
				)
			self._schema_ready = True
		return conn

	#============================================
	def _rows_to_records(self, rows: list[tuple]) -> list[StandupRecord]:
		records = []
		for (payload_text,) in rows:
			try:
				records.append(StandupRecord.from_dict(json.loads(payload_text)))
			except (KeyError, TypeError, ValueError) as error:
				raise StorageError(f"Stored standup record is malformed: {error}") from error
		return records

	#============================================
	def _query(self, sql: str, params: tuple) -> list[StandupRecord]:
		if not os.path.isfile(self.db_path):
			return []
		try:
			conn = self._connect()
			try:
				rows = conn.execute(sql, params).fetchall()
			finally:
				conn.close()
		except (OSError, sqlite3.Error) as error:
			raise StorageError(f"Failed to read standups from {self.db_path}: {error}") from error
		return self._rows_to_records(rows)

	#============================================
	def save(self, record: StandupRecord) -> None:
		date_key = validate_date_key(record.date_key)
		payload_text = json.dumps(record.to_dict(), ensure_ascii=False)
		try:
			conn = self._connect()
			try:
				with conn:
					conn.execute(
						f"""
						INSERT INTO {self.table_name} (date_key, username, generated_at, payload)
						VALUES (?, ?, ?, ?)
						ON CONFLICT(date_key, username)
						DO UPDATE SET
							generated_at = excluded.generated_at,
							payload = excluded.payload
						""",
						(date_key, record.username, record.generated_at, payload_text),
					)
			finally:
				conn.close()
		except (OSError, sqlite3.Error) as error:
			raise StorageError(f"Failed to save standup record for {date_key}: {error}") from error

	#============================================
	def read_latest(self) -> StandupRecord | None:
		records = self._query(
			f"SELECT payload FROM {self.table_name} "
			+ "ORDER BY date_key DESC, generated_at DESC LIMIT 1",
			(),
		)
		if not records:
			return None
		return records[0]

	#============================================
	def read_by_date(self, date_key: str) -> StandupRecord | None:
		records = self._query(
			f"SELECT payload FROM {self.table_name} "
			+ "WHERE date_key = ? ORDER BY generated_at DESC LIMIT 1",
			(validate_date_key(date_key),),
		)
		if not records:
			return None
		return records[0]

	#============================================
	def list(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[StandupRecord]:
		if limit <= 0:
			return []
		return self._query(
			f"SELECT payload FROM {self.table_name} "
			+ "ORDER BY date_key DESC, generated_at DESC LIMIT ?",
			(int(limit),),
		)
