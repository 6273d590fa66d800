"""Standup record persistence.

RecordStore is the contract every backend satisfies: one record per dateKey
with upsert semantics, the latest record, and a bounded newest-first history.
FileRecordStore keeps one <dateKey>.json per day plus a latest.json mirror.
"""

from __future__ import annotations

import abc
import contextlib
import json
import os
import re
import tempfile

from standuplib.errors import ConfigurationError
from standuplib.errors import StorageError
from standuplib.models import StandupRecord

DEFAULT_HISTORY_LIMIT = 7
LATEST_FILE_NAME = "latest.json"
DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATED_FILE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.json$")


#============================================
def validate_date_key(date_key: str) -> str:
	"""
	Reject dateKey values that are not YYYY-MM-DD.
	"""
	text = str(date_key or "")
	if not DATE_KEY_RE.match(text):
		raise StorageError(f"Invalid dateKey: {date_key!r}")
	return text


#============================================
class RecordStore(abc.ABC):
	"""
	Abstract persistence contract for standup records.
	"""

	@abc.abstractmethod
	def save(self, record: StandupRecord) -> None:
		"""
		Upsert the record for its dateKey.

		The record becomes the latest one unless a record with a later dateKey
		is already stored.
		"""

	@abc.abstractmethod
	def read_latest(self) -> StandupRecord | None:
		"""
		Return the record with the greatest dateKey, or None for an empty store.
		"""

	@abc.abstractmethod
	def read_by_date(self, date_key: str) -> StandupRecord | None:
		"""
		Return the record saved for one dateKey, or None.
		"""

	@abc.abstractmethod
	def list(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[StandupRecord]:
		"""
		Return up to limit records, newest dateKey first.
		"""


#============================================
class FileRecordStore(RecordStore):
	"""
	Directory of whole-file JSON standup records.
	"""

	def __init__(self, root_dir: str):
		self.root_dir = os.path.abspath(root_dir)

	#============================================
	def _dated_path(self, date_key: str) -> str:
		return os.path.join(self.root_dir, f"{validate_date_key(date_key)}.json")

	#============================================
	def _latest_path(self) -> str:
		return os.path.join(self.root_dir, LATEST_FILE_NAME)

	#============================================
	def _write_temp(self, text: str) -> str:
		"""
		Write text to a temporary file beside the records and return its path.
		"""
		with tempfile.NamedTemporaryFile(
			"w",
			encoding="utf-8",
			dir=self.root_dir,
			prefix=".standup-",
			suffix=".tmp",
			delete=False,
		) as handle:
			try:
				handle.write(text)
				handle.flush()
				os.fsync(handle.fileno())
			except OSError:
				handle.close()
				with contextlib.suppress(OSError):
					os.remove(handle.name)
				raise
			return handle.name

	#============================================
	def _read_record(self, path: str) -> StandupRecord | None:
		"""
		Load one record file, returning None when it does not exist.
		"""
		try:
			with open(path, "r", encoding="utf-8") as handle:
				payload = json.load(handle)
		except FileNotFoundError:
			return None
		except OSError as error:
			raise StorageError(f"Failed to read standup record {path}: {error}") from error
		except ValueError as error:
			raise StorageError(f"Standup record {path} is not valid JSON: {error}") from error
		try:
			return StandupRecord.from_dict(payload)
		except (KeyError, TypeError, ValueError) as error:
			raise StorageError(f"Standup record {path} is malformed: {error}") from error

	#============================================
	def _replaces_latest(self, date_key: str) -> bool:
		"""
		True unless latest.json already holds a later dateKey.
		"""
		try:
			current = self._read_record(self._latest_path())
		except StorageError:
			# an unreadable latest.json is rewritten by the next save
			return True
		if current is None:
			return True
		return date_key >= current.date_key

	#============================================
	def save(self, record: StandupRecord) -> None:
		dated_path = self._dated_path(record.date_key)
		text = json.dumps(record.to_dict(), indent=2, ensure_ascii=False) + "\n"
		replace_latest = self._replaces_latest(record.date_key)
		temp_paths = []
		try:
			os.makedirs(self.root_dir, exist_ok=True)
			dated_temp = self._write_temp(text)
			temp_paths.append(dated_temp)
			latest_temp = None
			if replace_latest:
				latest_temp = self._write_temp(text)
				temp_paths.append(latest_temp)
			# both payloads are on disk before either name changes
			os.replace(dated_temp, dated_path)
			if latest_temp is not None:
				os.replace(latest_temp, self._latest_path())
		except OSError as error:
			for temp_path in temp_paths:
				with contextlib.suppress(OSError):
					os.remove(temp_path)
			raise StorageError(
				f"Failed to save standup record for {record.date_key}: {error}"
			) from error

	#============================================
	def read_latest(self) -> StandupRecord | None:
		return self._read_record(self._latest_path())

	#============================================
	def read_by_date(self, date_key: str) -> StandupRecord | None:
		return self._read_record(self._dated_path(date_key))

	#============================================
	def list(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[StandupRecord]:
		if limit <= 0:
			return []
		try:
			names = os.listdir(self.root_dir)
		except FileNotFoundError:
			return []
		except OSError as error:
			raise StorageError(f"Failed to list standup records in {self.root_dir}: {error}") from error
		dated_names = sorted(
			[name for name in names if DATED_FILE_RE.match(name)],
			reverse=True,
		)
		records = []
		for name in dated_names[:limit]:
			record = self._read_record(os.path.join(self.root_dir, name))
			if record is not None:
				records.append(record)
		return records


#============================================
def create_record_store(settings) -> RecordStore:
	"""
	Build the record store backend selected in settings.
	"""
	backend = settings.storage_backend
	if backend == "file":
		return FileRecordStore(settings.storage_dir)
	if backend == "sqlite":
		from standuplib import sqlite_store
		return sqlite_store.SqliteRecordStore(
			os.path.join(settings.storage_dir, sqlite_store.DEFAULT_DB_NAME)
		)
	raise ConfigurationError(f"Unsupported storage backend: {backend}")
