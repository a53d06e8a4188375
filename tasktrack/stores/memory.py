"""
In-process document store.

Records are kept as plain dicts keyed by id and rehydrated into model
instances on every read, so callers never share mutable state with the
store. Used for tests and for running without a database.
"""
import itertools
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from tasktrack.errors import DuplicateAccount
from tasktrack.models import Account, RefreshToken, Task
from tasktrack.models.user import normalize_email
from tasktrack.services.query import TaskQuery
from tasktrack.stores.base import AccountStore, RecordStore, RefreshTokenStore, TaskStore

logger = logging.getLogger(__name__)


class Documents:
    """The three collections plus their id sequences."""

    def __init__(self):
        self.accounts: Dict[int, dict] = {}
        self.tasks: Dict[int, dict] = {}
        self.refresh_tokens: Dict[int, dict] = {}
        self._sequences = {
            "accounts": itertools.count(1),
            "tasks": itertools.count(1),
            "refresh_tokens": itertools.count(1),
        }

    def next_id(self, collection: str) -> int:
        return next(self._sequences[collection])


def _matches(task: Task, query: TaskQuery) -> bool:
    if query.is_completed is not None and task.is_completed != query.is_completed:
        return False
    if query.priority is not None and task.priority != query.priority:
        return False
    if query.category is not None and task.category != query.category:
        return False
    if query.due_date_from is not None and (task.due_date is None or task.due_date < query.due_date_from):
        return False
    if query.due_date_to is not None and (task.due_date is None or task.due_date > query.due_date_to):
        return False
    if query.search_term:
        term = query.search_term.lower()
        in_title = term in task.title.lower()
        in_description = task.description is not None and term in task.description.lower()
        if not (in_title or in_description):
            return False
    if query.tags:
        if task.tags is None or query.tags.lower() not in task.tags.lower():
            return False
    return True


def _sorted(tasks: Iterable[Task], query: TaskQuery) -> List[Task]:
    attr = query.sort_by
    present = [task for task in tasks if getattr(task, attr) is not None]
    missing = [task for task in tasks if getattr(task, attr) is None]

    def key(task: Task):
        value = getattr(task, attr)
        if attr == "title":
            value = value.lower()
        return (value, task.id)

    present.sort(key=key, reverse=query.sort_descending)
    # Null due dates trail in both directions
    missing.sort(key=lambda task: task.id, reverse=query.sort_descending)
    return present + missing


class MemoryAccountStore(AccountStore):

    def __init__(self, documents: Documents):
        self.documents = documents

    def _load(self, doc: Optional[dict]) -> Optional[Account]:
        return Account(**doc) if doc is not None else None

    def _find(self, predicate) -> Optional[Account]:
        for doc in self.documents.accounts.values():
            if predicate(doc):
                return self._load(doc)
        return None

    async def get(self, account_id: int) -> Optional[Account]:
        return self._load(self.documents.accounts.get(account_id))

    async def get_by_username(self, username: str) -> Optional[Account]:
        return self._find(lambda doc: doc["username"] == username)

    async def get_by_email(self, email: str) -> Optional[Account]:
        email = normalize_email(email)
        return self._find(lambda doc: doc["email"] == email)

    async def exists(self, username: str, email: str) -> bool:
        email = normalize_email(email)
        return any(
            doc["username"] == username or doc["email"] == email
            for doc in self.documents.accounts.values()
        )

    def _conflicts(self, account: Account) -> bool:
        return any(
            doc_id != account.id and (doc["username"] == account.username or doc["email"] == account.email)
            for doc_id, doc in self.documents.accounts.items()
        )

    async def add(self, account: Account) -> Account:
        if self._conflicts(account):
            raise DuplicateAccount()
        account.id = self.documents.next_id("accounts")
        self.documents.accounts[account.id] = account.model_dump()
        return self._load(self.documents.accounts[account.id])

    async def update(self, account: Account) -> Optional[Account]:
        if account.id not in self.documents.accounts:
            return None
        if self._conflicts(account):
            raise DuplicateAccount("Email already exists")
        self.documents.accounts[account.id] = account.model_dump()
        return self._load(self.documents.accounts[account.id])

    async def delete(self, account_id: int) -> bool:
        if self.documents.accounts.pop(account_id, None) is None:
            return False
        for collection in (self.documents.tasks, self.documents.refresh_tokens):
            owned = [doc_id for doc_id, doc in collection.items() if doc["account_id"] == account_id]
            for doc_id in owned:
                del collection[doc_id]
        return True


class MemoryTaskStore(TaskStore):

    def __init__(self, documents: Documents):
        self.documents = documents

    def _owned(self, account_id: int) -> List[Task]:
        return [
            Task.from_record(**doc)
            for doc in self.documents.tasks.values()
            if doc["account_id"] == account_id
        ]

    def _scoped_doc(self, account_id: int, task_id: int) -> Optional[dict]:
        doc = self.documents.tasks.get(task_id)
        if doc is None or doc["account_id"] != account_id:
            return None
        return doc

    async def get(self, account_id: int, task_id: int) -> Optional[Task]:
        doc = self._scoped_doc(account_id, task_id)
        return Task.from_record(**doc) if doc is not None else None

    async def list_tasks(self, account_id: int, query: TaskQuery,
                         offset: int = 0, limit: Optional[int] = None) -> List[Task]:
        tasks = _sorted([task for task in self._owned(account_id) if _matches(task, query)], query)
        end = None if limit is None else offset + limit
        return tasks[offset:end]

    async def count_tasks(self, account_id: int, query: TaskQuery) -> int:
        return sum(1 for task in self._owned(account_id) if _matches(task, query))

    async def add(self, task: Task) -> Task:
        task.id = self.documents.next_id("tasks")
        self.documents.tasks[task.id] = task.to_record()
        return Task.from_record(**self.documents.tasks[task.id])

    async def update(self, task: Task) -> Optional[Task]:
        if self._scoped_doc(task.account_id, task.id) is None:
            return None
        self.documents.tasks[task.id] = task.to_record()
        return Task.from_record(**self.documents.tasks[task.id])

    async def delete(self, account_id: int, task_id: int) -> bool:
        if self._scoped_doc(account_id, task_id) is None:
            return False
        del self.documents.tasks[task_id]
        return True

    async def exists(self, account_id: int, task_id: int) -> bool:
        return self._scoped_doc(account_id, task_id) is not None


class MemoryRefreshTokenStore(RefreshTokenStore):

    def __init__(self, documents: Documents):
        self.documents = documents

    def _owned(self, account_id: int) -> List[RefreshToken]:
        return [
            RefreshToken(**doc)
            for doc in self.documents.refresh_tokens.values()
            if doc["account_id"] == account_id
        ]

    async def get(self, token_id: int) -> Optional[RefreshToken]:
        doc = self.documents.refresh_tokens.get(token_id)
        return RefreshToken(**doc) if doc is not None else None

    async def get_by_token(self, token: str) -> Optional[RefreshToken]:
        for doc in self.documents.refresh_tokens.values():
            if doc["token"] == token:
                return RefreshToken(**doc)
        return None

    async def list_active(self, account_id: int, now: datetime) -> List[RefreshToken]:
        active = [token for token in self._owned(account_id) if token.is_active(now)]
        active.sort(key=lambda token: (token.created_at, token.id), reverse=True)
        return active

    async def delete_expired(self, account_id: int, now: datetime) -> int:
        expired = [token.id for token in self._owned(account_id) if token.is_expired(now)]
        for token_id in expired:
            del self.documents.refresh_tokens[token_id]
        return len(expired)

    async def delete(self, token_id: int) -> bool:
        return self.documents.refresh_tokens.pop(token_id, None) is not None

    async def add(self, token: RefreshToken) -> RefreshToken:
        if any(doc["token"] == token.token for doc in self.documents.refresh_tokens.values()):
            raise ValueError("Refresh token value already stored")
        token.id = self.documents.next_id("refresh_tokens")
        self.documents.refresh_tokens[token.id] = token.model_dump()
        return RefreshToken(**self.documents.refresh_tokens[token.id])

    async def update(self, token: RefreshToken) -> Optional[RefreshToken]:
        if token.id not in self.documents.refresh_tokens:
            return None
        self.documents.refresh_tokens[token.id] = token.model_dump()
        return RefreshToken(**self.documents.refresh_tokens[token.id])

    async def revoke_all(self, account_id: int, now: datetime) -> int:
        revoked = 0
        for token in self._owned(account_id):
            if token.is_revoked:
                continue
            token.revoke(now)
            self.documents.refresh_tokens[token.id] = token.model_dump()
            revoked += 1
        return revoked


class MemoryRecordStore(RecordStore):

    backend = "memory"

    def __init__(self):
        self.documents = Documents()
        self.accounts = MemoryAccountStore(self.documents)
        self.tasks = MemoryTaskStore(self.documents)
        self.refresh_tokens = MemoryRefreshTokenStore(self.documents)

    async def initialize(self) -> None:
        logger.info("Using in-memory record store")

    async def close(self) -> None:
        pass

    async def ping(self) -> bool:
        return True
