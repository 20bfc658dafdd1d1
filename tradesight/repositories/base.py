from typing import (
    TypeVar,
    Generic,
    Sequence,
    Optional,
    Any,
    Literal,
    Union,
    overload,
)

from sqlalchemy import func, inspect
from sqlalchemy import select, asc, desc, and_, or_, not_, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from tradesight.core.exceptions import RepositoryError
from tradesight.models.base import Base


T = TypeVar("T", bound=Base)

# Operator keys
ComparisonKey = Literal["=", ">", "<", ">=", "<=", "!=", "like", "in", "not_in"]

# Comparison operator filter
ComparisonFilter = dict[ComparisonKey, Any]

# Recursive where expression
WhereExpr = Union[
    dict[str, Any | ComparisonFilter],  # column filters
    dict[Literal["and", "or"], list["WhereExpr"]],  # logical nesting
    dict[Literal["not"], "WhereExpr"],
]

OrderBy = list[tuple[str, Literal["asc", "desc"]]]


class BaseRepository(Generic[T]):
    model: type[T]

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _build_where(self, where: WhereExpr):
        """Recursively converts a WhereExpr into a SQLAlchemy expression."""
        if not where:
            return None

        expressions = []

        for key, value in where.items():
            key_lower = key.lower()

            # Logical operators
            if key_lower == "and":
                sub_exprs = [self._build_where(cond) for cond in value]
                expressions.append(and_(*[e for e in sub_exprs if e is not None]))
            elif key_lower == "or":
                sub_exprs = [self._build_where(cond) for cond in value]
                expressions.append(or_(*[e for e in sub_exprs if e is not None]))
            elif key_lower == "not":
                expr = self._build_where(value)
                if expr is not None:
                    expressions.append(not_(expr))
            else:
                column = getattr(self.model, key, None)
                if column is None:
                    raise ValueError(f"{self.model} has no column '{key}'")

                if isinstance(value, dict):  # operator-based
                    for op, v in value.items():
                        match op:
                            case "=":
                                expressions.append(column == v)
                            case "!=":
                                expressions.append(column != v)
                            case ">":
                                expressions.append(column > v)
                            case "<":
                                expressions.append(column < v)
                            case ">=":
                                expressions.append(column >= v)
                            case "<=":
                                expressions.append(column <= v)
                            case "like":
                                expressions.append(column.like(v))
                            case "in":
                                expressions.append(column.in_(v))
                            case "not_in":
                                expressions.append(column.not_in(v))
                            case _:
                                raise ValueError(f"Unsupported operator '{op}'")
                elif isinstance(value, (list, tuple, set)):
                    expressions.append(column.in_(value))
                else:
                    expressions.append(column == value)

        return and_(*expressions) if len(expressions) > 1 else expressions[0]

    def _valid_columns(self) -> set[str]:
        return {col.key for col in inspect(self.model).columns}

    def _finish(self, commit: bool, *refresh: Any) -> None:
        try:
            if commit:
                self.session.commit()
                for instance in refresh:
                    self.session.refresh(instance)
            else:
                self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Database error on {self.model.__name__}: {e}") from e

    def find(
            self,
            where: Optional[WhereExpr] = None,
            order_by: Optional[OrderBy] = None,
            skip: Optional[int] = None,
            take: Optional[int] = None,
            raw: bool = False,
    ) -> Sequence[T] | Select:
        """
        TypeORM-style find() with typed nested filters and operators.
        """
        stmt = select(self.model)

        where_expr = self._build_where(where) if where else None
        if where_expr is not None:
            stmt = stmt.where(where_expr)

        if order_by is not None:
            for col, direction in order_by:
                column = getattr(self.model, col, None)
                if column is None:
                    raise ValueError(f"{self.model} has no column '{col}'")
                stmt = stmt.order_by(
                    asc(column) if direction == "asc" else desc(column)
                )

        if skip is not None:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)

        if raw:
            return stmt
        try:
            return self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during find on {self.model.__name__}: {e}") from e

    def find_one(self, where: Optional[WhereExpr] = None) -> Optional[T]:
        stmt = self.find(where=where, raw=True, take=1)
        try:
            return self.session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during find on {self.model.__name__}: {e}") from e

    def count(self, where: Optional[WhereExpr] = None) -> int:
        """Count total items matching the filter"""

        stmt = select(func.count()).select_from(self.model)

        if where:
            where_expr = self._build_where(where)
            if where_expr is not None:
                stmt = stmt.where(where_expr)

        return self.session.execute(stmt).scalar_one()

    @overload
    def create(self, data: T, commit: bool = True) -> T:
        ...

    @overload
    def create(self, data: dict[str, Any], commit: bool = True) -> T:
        ...

    def create(self, data: dict[str, Any] | T, commit: bool = True) -> T:
        """
        Create a new record from a dict of column values or a model instance.

        Raises:
            ValueError: unknown column names in `data`
            RepositoryError: the database rejected the write
        """
        if isinstance(data, dict):
            invalid_keys = set(data.keys()) - self._valid_columns()
            if invalid_keys:
                raise ValueError(
                    f"{self.model.__name__} has no columns: {', '.join(invalid_keys)}"
                )
            instance = self.model(**data)
        else:
            instance = data

        self.session.add(instance)
        self._finish(commit, instance)
        return instance

    def update(self, where: T, data: dict[str, Any], commit: bool = True) -> T:
        """Update a specific instance in place."""
        invalid_keys = set(data.keys()) - self._valid_columns()
        if invalid_keys:
            raise ValueError(
                f"{self.model.__name__} has no columns: {', '.join(invalid_keys)}"
            )

        for key, value in data.items():
            setattr(where, key, value)

        self._finish(commit, where)
        return where

    def delete(self, where: WhereExpr | T, commit: bool = True) -> int:
        """
        Delete a specific instance, or every record matching a filter.

        Example:
            count = repo.delete(where={"user_id": "u-1"})
        """
        if isinstance(where, self.model):
            self.session.delete(where)
            self._finish(commit)
            return 1

        if not where:
            raise ValueError("where parameter is required for delete operation")

        stmt = delete(self.model)
        where_expr = self._build_where(where)
        if where_expr is not None:
            stmt = stmt.where(where_expr)

        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Database error during delete on {self.model.__name__}: {e}") from e
        self._finish(commit)
        return result.rowcount
