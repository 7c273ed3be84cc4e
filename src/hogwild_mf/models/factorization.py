"""Implicit-feedback matrix factorization trained with Hogwild SGD."""
import numbers
import os
from typing import Sequence

import numpy as np
import torch

from hogwild_mf.config import Hyperparameters
from hogwild_mf.data.interactions import Interaction, dimensions_of, interaction_arrays
from hogwild_mf.engine.trainer import ModelData, fit_shards
from hogwild_mf.errors import InvalidConfiguration, InvalidIndex, NotFitted
from hogwild_mf.utils.logger import setup_logger

logger = setup_logger(__name__)


def available_cpus() -> int:
    """CPUs this process may run on, honouring affinity masks where the OS exposes them."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


class ImplicitFactorizationModel:
    """
    Latent-factor model for positive-only interaction data.

    A user's preference for an item is scored as the inner product of their
    embeddings plus an item bias. Parameter tables are created by the first
    `fit` call, sized to the ids seen there, and reused by every later call.

    Attributes:
        hyper (Hyperparameters): Training configuration.
        num_threads (int): Number of worker threads (and data shards) used by `fit`.
    """

    def __init__(
        self,
        hyper: Hyperparameters | None = None,
        *,
        num_threads: int | None = None,
        random_state: int | None = None,
    ) -> None:
        self.hyper = hyper if hyper is not None else Hyperparameters()
        self.num_threads = num_threads if num_threads is not None else available_cpus()
        if self.num_threads <= 0:
            raise InvalidConfiguration(f"num_threads must be positive, got {self.num_threads}.")

        # first child seeds the tables, later children the per-fit worker streams
        self._seed_sequence = np.random.SeedSequence(random_state)
        self._data: ModelData | None = None

    @property
    def is_fitted(self) -> bool:
        return self._data is not None

    @property
    def num_users(self) -> int | None:
        return self._data.num_users if self._data is not None else None

    @property
    def num_items(self) -> int | None:
        return self._data.num_items if self._data is not None else None

    @property
    def model_data(self) -> ModelData:
        if self._data is None:
            raise NotFitted("Model must be fitted first.")
        return self._data

    def _build_model(self, num_users: int, num_items: int) -> ModelData:
        init_rng = np.random.default_rng(self._seed_sequence.spawn(1)[0])
        logger.info(
            f"Allocating tables | users: {num_users:,} | items: {num_items:,} | latent_dim: {self.hyper.latent_dim}"
        )
        return ModelData.build(num_users, num_items, self.hyper.latent_dim, init_rng)

    def fit(self, interactions: Sequence[Interaction], num_epochs: int) -> float:
        """Train for `num_epochs` passes over *interactions* and return the training loss.

        The returned value is the sum over worker shards of each shard's mean
        per-example loss, so it grows with `num_threads`.

        Raises:
            EmptyInput: *interactions* is empty.
            InvalidIndex: a warm model sees ids beyond the tables it was built with.
            InvalidConfiguration: `num_epochs` is not a positive integer.
        """
        if isinstance(num_epochs, bool) or not isinstance(num_epochs, numbers.Integral) or num_epochs <= 0:
            raise InvalidConfiguration(f"num_epochs must be a positive integer, got {num_epochs!r}.")

        user_ids, item_ids = interaction_arrays(interactions)
        num_users, num_items = dimensions_of(user_ids, item_ids)

        if self._data is None:
            self._data = self._build_model(num_users, num_items)
        elif num_users > self._data.num_users or num_items > self._data.num_items:
            raise InvalidIndex(
                f"Interactions span {num_users} users x {num_items} items but the model was built "
                f"for {self._data.num_users} x {self._data.num_items}."
            )

        loss = fit_shards(
            self._data,
            user_ids,
            item_ids,
            hyper=self.hyper,
            num_epochs=num_epochs,
            num_threads=self.num_threads,
            seed_sequence=self._seed_sequence,
        )
        logger.info(f"Fit done | loss = {loss:.4f}")
        return loss

    def predict(self, user_id: int) -> np.ndarray:
        """Scores of every item for *user_id*, shape (num_items,)."""
        if self._data is None:
            raise NotFitted("Model must be fitted first.")
        if not 0 <= user_id < self._data.num_users:
            raise InvalidIndex(f"User id {user_id} outside [0, {self._data.num_users}).")

        d = self._data
        with torch.no_grad():
            scores = d.item_biases.weight[:, 0] + d.item_embedding.weight @ d.user_embedding.weight[user_id]
        return scores.numpy()
