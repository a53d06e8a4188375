"""
Record store interfaces.

Services depend only on these. Every task and refresh-token operation is
scoped by account id inside the store, so callers cannot forget it.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from tasktrack.models import Account, RefreshToken, Task
from tasktrack.services.query import TaskQuery


class AccountStore(ABC):

    @abstractmethod
    async def get(self, account_id: int) -> Optional[Account]:
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[Account]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Account]:
        """Look up by normalized email."""

    @abstractmethod
    async def exists(self, username: str, email: str) -> bool:
        """True when either the username or the normalized email is taken."""

    @abstractmethod
    async def add(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateAccount: If the username or email is already stored
        """

    @abstractmethod
    async def update(self, account: Account) -> Optional[Account]:
        ...

    @abstractmethod
    async def delete(self, account_id: int) -> bool:
        """Delete the account together with its tasks and refresh tokens."""


class TaskStore(ABC):

    @abstractmethod
    async def get(self, account_id: int, task_id: int) -> Optional[Task]:
        ...

    @abstractmethod
    async def list_tasks(self, account_id: int, query: TaskQuery,
                         offset: int = 0, limit: Optional[int] = None) -> List[Task]:
        """Filtered, sorted tasks; limit=None returns everything from offset."""

    @abstractmethod
    async def count_tasks(self, account_id: int, query: TaskQuery) -> int:
        """Count with the same predicate as list_tasks, ignoring paging."""

    @abstractmethod
    async def add(self, task: Task) -> Task:
        ...

    @abstractmethod
    async def update(self, task: Task) -> Optional[Task]:
        """Persist changes; None when (task.account_id, task.id) does not exist."""

    @abstractmethod
    async def delete(self, account_id: int, task_id: int) -> bool:
        ...

    @abstractmethod
    async def exists(self, account_id: int, task_id: int) -> bool:
        ...


class RefreshTokenStore(ABC):

    @abstractmethod
    async def get(self, token_id: int) -> Optional[RefreshToken]:
        ...

    @abstractmethod
    async def get_by_token(self, token: str) -> Optional[RefreshToken]:
        ...

    @abstractmethod
    async def list_active(self, account_id: int, now: datetime) -> List[RefreshToken]:
        """Unrevoked, unexpired tokens, newest first."""

    @abstractmethod
    async def delete_expired(self, account_id: int, now: datetime) -> int:
        ...

    @abstractmethod
    async def delete(self, token_id: int) -> bool:
        ...

    @abstractmethod
    async def add(self, token: RefreshToken) -> RefreshToken:
        ...

    @abstractmethod
    async def update(self, token: RefreshToken) -> Optional[RefreshToken]:
        ...

    @abstractmethod
    async def revoke_all(self, account_id: int, now: datetime) -> int:
        """Revoke every unrevoked token of the account; returns how many."""


class RecordStore(ABC):
    """Bundle of the three entity stores for one backend."""

    backend = "abstract"
    accounts: AccountStore
    tasks: TaskStore
    refresh_tokens: RefreshTokenStore

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create tables etc.)."""

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        """True when the backend answers."""
