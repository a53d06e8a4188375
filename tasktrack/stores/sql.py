"""Relational record store built on SQLModel's async session."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from tasktrack.db.config import create_db_engine, new_session
from tasktrack.db.init import init_db
from tasktrack.errors import DuplicateAccount, NotFound
from tasktrack.models import Account, RefreshToken, Task
from tasktrack.models.user import normalize_email
from tasktrack.services.query import TaskQuery
from tasktrack.stores.base import AccountStore, RecordStore, RefreshTokenStore, TaskStore

logger = logging.getLogger(__name__)


def _apply_task_filters(statement, account_id: int, query: TaskQuery):
    """Scope to the account and AND every filter the query carries."""
    statement = statement.where(Task.account_id == account_id)

    if query.is_completed is not None:
        statement = statement.where(Task.is_completed == query.is_completed)
    if query.priority is not None:
        statement = statement.where(Task.priority == query.priority)
    if query.category is not None:
        statement = statement.where(Task.category == query.category)
    if query.due_date_from is not None:
        statement = statement.where(col(Task.due_date) >= query.due_date_from)
    if query.due_date_to is not None:
        statement = statement.where(col(Task.due_date) <= query.due_date_to)
    if query.search_term:
        statement = statement.where(
            or_(
                col(Task.title).icontains(query.search_term, autoescape=True),
                col(Task.description).icontains(query.search_term, autoescape=True),
            )
        )
    if query.tags:
        statement = statement.where(col(Task.tags).icontains(query.tags, autoescape=True))

    return statement


def _apply_task_sort(statement, query: TaskQuery):
    column = getattr(Task, query.sort_by)
    if query.sort_by == "title":
        column = func.lower(column)

    order = column.desc() if query.sort_descending else column.asc()
    if query.sort_by == "due_date":
        order = order.nulls_last()
    tiebreak = col(Task.id).desc() if query.sort_descending else col(Task.id).asc()
    return statement.order_by(order, tiebreak)


class SqlAccountStore(AccountStore):

    def __init__(self, engine):
        self.engine = engine

    async def get(self, account_id: int) -> Optional[Account]:
        async with new_session(self.engine) as session:
            return await session.get(Account, account_id)

    async def get_by_username(self, username: str) -> Optional[Account]:
        async with new_session(self.engine) as session:
            result = await session.exec(select(Account).where(Account.username == username))
            return result.first()

    async def get_by_email(self, email: str) -> Optional[Account]:
        async with new_session(self.engine) as session:
            result = await session.exec(select(Account).where(Account.email == normalize_email(email)))
            return result.first()

    async def exists(self, username: str, email: str) -> bool:
        statement = (
            select(Account.id)
            .where(or_(Account.username == username, Account.email == normalize_email(email)))
            .limit(1)
        )
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            return result.first() is not None

    async def add(self, account: Account) -> Account:
        async with new_session(self.engine) as session:
            session.add(account)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateAccount()
            await session.refresh(account)
            return account

    async def update(self, account: Account) -> Optional[Account]:
        async with new_session(self.engine) as session:
            if await session.get(Account, account.id) is None:
                return None
            merged = await session.merge(account)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateAccount("Email already exists")
            return merged

    async def delete(self, account_id: int) -> bool:
        async with new_session(self.engine) as session:
            account = await session.get(Account, account_id)
            if account is None:
                return False

            for model in (Task, RefreshToken):
                rows = await session.exec(select(model).where(model.account_id == account_id))
                for row in rows.all():
                    await session.delete(row)
            # Children go first so the account row is free of references
            await session.flush()

            await session.delete(account)
            await session.commit()
            return True


class SqlTaskStore(TaskStore):

    def __init__(self, engine):
        self.engine = engine

    @staticmethod
    def _scoped(account_id: int, task_id: int):
        return select(Task).where(Task.id == task_id).where(Task.account_id == account_id)

    async def get(self, account_id: int, task_id: int) -> Optional[Task]:
        async with new_session(self.engine) as session:
            result = await session.exec(self._scoped(account_id, task_id))
            return result.first()

    async def list_tasks(self, account_id: int, query: TaskQuery,
                         offset: int = 0, limit: Optional[int] = None) -> List[Task]:
        statement = _apply_task_filters(select(Task), account_id, query)
        statement = _apply_task_sort(statement, query)
        if offset:
            statement = statement.offset(offset)
        if limit is not None:
            statement = statement.limit(limit)

        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            return list(result.all())

    async def count_tasks(self, account_id: int, query: TaskQuery) -> int:
        statement = _apply_task_filters(select(func.count(col(Task.id))), account_id, query)
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            return result.one()

    async def add(self, task: Task) -> Task:
        async with new_session(self.engine) as session:
            session.add(task)
            try:
                await session.commit()
            except IntegrityError:
                # Owning account was deleted in the meantime
                await session.rollback()
                raise NotFound(f"Account with ID {task.account_id} not found")
            await session.refresh(task)
            return task

    async def update(self, task: Task) -> Optional[Task]:
        async with new_session(self.engine) as session:
            existing = await session.exec(self._scoped(task.account_id, task.id))
            if existing.first() is None:
                return None
            merged = await session.merge(task)
            await session.commit()
            return merged

    async def delete(self, account_id: int, task_id: int) -> bool:
        async with new_session(self.engine) as session:
            result = await session.exec(self._scoped(account_id, task_id))
            task = result.first()
            if task is None:
                return False
            await session.delete(task)
            await session.commit()
            return True

    async def exists(self, account_id: int, task_id: int) -> bool:
        statement = select(Task.id).where(Task.id == task_id).where(Task.account_id == account_id)
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            return result.first() is not None


class SqlRefreshTokenStore(RefreshTokenStore):

    def __init__(self, engine):
        self.engine = engine

    async def get(self, token_id: int) -> Optional[RefreshToken]:
        async with new_session(self.engine) as session:
            return await session.get(RefreshToken, token_id)

    async def get_by_token(self, token: str) -> Optional[RefreshToken]:
        async with new_session(self.engine) as session:
            result = await session.exec(select(RefreshToken).where(RefreshToken.token == token))
            return result.first()

    async def list_active(self, account_id: int, now: datetime) -> List[RefreshToken]:
        statement = (
            select(RefreshToken)
            .where(RefreshToken.account_id == account_id)
            .where(RefreshToken.is_revoked == False)  # noqa: E712
            .where(RefreshToken.expires_at > now)
            .order_by(col(RefreshToken.created_at).desc(), col(RefreshToken.id).desc())
        )
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            return list(result.all())

    async def delete_expired(self, account_id: int, now: datetime) -> int:
        statement = (
            select(RefreshToken)
            .where(RefreshToken.account_id == account_id)
            .where(RefreshToken.expires_at <= now)
        )
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            expired = list(result.all())
            for token in expired:
                await session.delete(token)
            await session.commit()
            return len(expired)

    async def delete(self, token_id: int) -> bool:
        async with new_session(self.engine) as session:
            token = await session.get(RefreshToken, token_id)
            if token is None:
                return False
            await session.delete(token)
            await session.commit()
            return True

    async def add(self, token: RefreshToken) -> RefreshToken:
        async with new_session(self.engine) as session:
            session.add(token)
            await session.commit()
            await session.refresh(token)
            return token

    async def update(self, token: RefreshToken) -> Optional[RefreshToken]:
        async with new_session(self.engine) as session:
            if await session.get(RefreshToken, token.id) is None:
                return None
            merged = await session.merge(token)
            await session.commit()
            return merged

    async def revoke_all(self, account_id: int, now: datetime) -> int:
        statement = (
            select(RefreshToken)
            .where(RefreshToken.account_id == account_id)
            .where(RefreshToken.is_revoked == False)  # noqa: E712
        )
        async with new_session(self.engine) as session:
            result = await session.exec(statement)
            tokens = list(result.all())
            for token in tokens:
                token.revoke(now)
                session.add(token)
            await session.commit()
            return len(tokens)


class SqlRecordStore(RecordStore):
    """Tables created through SQLModel metadata on an async engine."""

    backend = "sql"

    def __init__(self, database_url: str):
        self.engine = create_db_engine(database_url)
        self.accounts = SqlAccountStore(self.engine)
        self.tasks = SqlTaskStore(self.engine)
        self.refresh_tokens = SqlRefreshTokenStore(self.engine)

    async def initialize(self) -> None:
        await init_db(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
