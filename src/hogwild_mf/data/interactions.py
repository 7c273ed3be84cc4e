"""Interaction records and the sparse per-user interaction matrix."""
from bisect import bisect_left
from typing import Iterable, Protocol, Sequence, TypeVar, runtime_checkable

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, NonNegativeInt

from hogwild_mf.errors import EmptyInput, InvalidConfiguration, InvalidIndex


@runtime_checkable
class Interaction(Protocol):
    """Anything exposing a (user, item, weight) triple can be trained on."""

    @property
    def user_id(self) -> int: ...

    @property
    def item_id(self) -> int: ...

    @property
    def weight(self) -> float: ...


T = TypeVar("T", bound=Interaction)


class UnweightedInteraction(BaseModel):
    """A single implicit (positive-only) observation; weight is always 1."""

    model_config = ConfigDict(frozen=True)

    user_id: NonNegativeInt
    item_id: NonNegativeInt

    def __init__(self, user_id: int, item_id: int) -> None:
        super().__init__(user_id=user_id, item_id=item_id)

    @property
    def weight(self) -> float:
        return 1.0


def interactions_from_frame(
    df: pd.DataFrame,
    user_col: str = "user",
    item_col: str = "item",
) -> list[UnweightedInteraction]:
    """Turn a frame of already dense (user, item) ids into interaction records."""
    return [
        UnweightedInteraction(int(user), int(item))
        for user, item in df[[user_col, item_col]].itertuples(index=False, name=None)
    ]


def interaction_arrays(interactions: Sequence[Interaction]) -> tuple[np.ndarray, np.ndarray]:
    """Column arrays (user ids, item ids) of a non-empty interaction sequence."""
    if len(interactions) == 0:
        raise EmptyInput("Cannot use an empty interaction sequence.")

    user_ids = np.fromiter((x.user_id for x in interactions), dtype=np.int64, count=len(interactions))
    item_ids = np.fromiter((x.item_id for x in interactions), dtype=np.int64, count=len(interactions))

    if user_ids.min() < 0 or item_ids.min() < 0:
        raise InvalidIndex("User and item ids must be non-negative.")

    return user_ids, item_ids


def dimensions_of(user_ids: np.ndarray, item_ids: np.ndarray) -> tuple[int, int]:
    return int(user_ids.max()) + 1, int(item_ids.max()) + 1


def get_dimensions(interactions: Sequence[Interaction]) -> tuple[int, int]:
    """Return (max user id + 1, max item id + 1) over a non-empty sequence."""
    return dimensions_of(*interaction_arrays(interactions))


def train_test_split(
    interactions: Sequence[T],
    rng: np.random.Generator | int | None,
    test_fraction: float,
) -> tuple[list[T], list[T]]:
    """Shuffle a copy of *interactions* and cut off the first `test_fraction` as test.

    Returns
    -------
    (train, test) : tuple[list, list]
    """
    if not 0.0 <= test_fraction <= 1.0:
        raise InvalidConfiguration(f"test_fraction must lie in [0, 1], got {test_fraction}.")

    rng = np.random.default_rng(rng)
    order = rng.permutation(len(interactions))
    shuffled = [interactions[idx] for idx in order]

    cut = int(test_fraction * len(interactions))
    return shuffled[cut:], shuffled[:cut]


class InteractionMatrix:
    """Sparse snapshot of observed interactions: one sorted, duplicate-free item row per user.

    Parameters
    ----------
    num_users, num_items : int
        Bounds of the id space. Every stored id lies in `[0, num_users)` x `[0, num_items)`.
    """

    def __init__(self, num_users: int, num_items: int) -> None:
        if num_users < 0 or num_items < 0:
            raise InvalidConfiguration("Matrix dimensions must be non-negative.")
        self._num_users = num_users
        self._num_items = num_items
        self._rows: list[list[int]] = [[] for _ in range(num_users)]

    @classmethod
    def from_interactions(
        cls,
        num_users: int,
        num_items: int,
        interactions: Iterable[Interaction],
    ) -> "InteractionMatrix":
        mat = cls(num_users, num_items)
        for elem in interactions:
            mat.add(elem.user_id, elem.item_id)
        return mat

    @property
    def num_users(self) -> int:
        return self._num_users

    @property
    def num_items(self) -> int:
        return self._num_items

    def _check_user(self, user_id: int) -> None:
        if not 0 <= user_id < self._num_users:
            raise InvalidIndex(f"User id {user_id} outside [0, {self._num_users}).")

    def add(self, user_id: int, item_id: int) -> None:
        """Insert (user_id, item_id) keeping the row sorted; re-adding is a no-op."""
        self._check_user(user_id)
        if not 0 <= item_id < self._num_items:
            raise InvalidIndex(f"Item id {item_id} outside [0, {self._num_items}).")

        row = self._rows[user_id]
        idx = bisect_left(row, item_id)
        if idx == len(row) or row[idx] != item_id:
            row.insert(idx, item_id)

    def get(self, user_id: int) -> tuple[int, ...]:
        self._check_user(user_id)
        return tuple(self._rows[user_id])

    def rows(self) -> tuple[tuple[int, ...], ...]:
        return tuple(tuple(row) for row in self._rows)

    def __len__(self) -> int:
        return sum(len(row) for row in self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InteractionMatrix):
            return NotImplemented
        return (
            self._num_users == other._num_users
            and self._num_items == other._num_items
            and self._rows == other._rows
        )

    def __repr__(self) -> str:
        return f"InteractionMatrix(num_users={self._num_users}, num_items={self._num_items}, nnz={len(self)})"
