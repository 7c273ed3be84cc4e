"""Parallel lock-free ("Hogwild") SGD over shared embedding tables."""
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import torch
import torch.nn as nn

from hogwild_mf.config import Hyperparameters
from hogwild_mf.engine.losses import sigmoid_ranking_loss
from hogwild_mf.engine.ops import gather, pairwise_scores
from hogwild_mf.utils.logger import setup_logger

logger = setup_logger(__name__)


def embedding_init(rows: int, cols: int, rng: np.random.Generator) -> torch.Tensor:
    """Uniform [0, 1) entries scaled by 1 / sqrt(cols)."""
    values = rng.random((rows, cols), dtype=np.float32) / math.sqrt(cols)
    return torch.from_numpy(values.astype(np.float32, copy=False))


class ModelData(nn.Module):
    """
    Parameter tables owned by the model and shared, unlocked, with every worker.

    All three tables are sparse `nn.Embedding`s, so a backward pass only
    produces gradients for the rows a minibatch touched. Nothing ever resizes
    them; every handle returned by `shared` stays valid for the model's lifetime.

    Attributes:
        user_embedding (nn.Embedding): (num_users, latent_dim) user factors.
        item_embedding (nn.Embedding): (num_items, latent_dim) item factors.
        item_biases (nn.Embedding): (num_items, 1) item biases.
    """
    def __init__(self, user_weights: torch.Tensor, item_weights: torch.Tensor, bias_weights: torch.Tensor) -> None:
        super().__init__()
        self.num_users = user_weights.shape[0]
        self.num_items = item_weights.shape[0]

        # from_pretrained wraps the given tensors without copying them
        self.user_embedding = nn.Embedding.from_pretrained(user_weights, freeze=False, sparse=True)
        self.item_embedding = nn.Embedding.from_pretrained(item_weights, freeze=False, sparse=True)
        self.item_biases = nn.Embedding.from_pretrained(bias_weights, freeze=False, sparse=True)

    @classmethod
    def build(cls, num_users: int, num_items: int, latent_dim: int, rng: np.random.Generator) -> "ModelData":
        return cls(
            embedding_init(num_users, latent_dim, rng),
            embedding_init(num_items, latent_dim, rng),
            embedding_init(num_items, 1, rng),
        )

    def shared(self) -> "ModelData":
        """A worker handle on the same storage with its own gradient buffers."""
        return ModelData(
            self.user_embedding.weight.detach(),
            self.item_embedding.weight.detach(),
            self.item_biases.weight.detach(),
        )


class PairwiseGraph:
    """One worker's scoring graph over its handle on the shared tables.

    The index buffers are numpy arrays viewed by torch without a copy, so
    filling them in place is all it takes to point the graph at the next
    minibatch.
    """

    def __init__(self, data: ModelData, minibatch_size: int, learning_rate: float) -> None:
        self.data = data
        self.optimiser = torch.optim.SGD(data.parameters(), lr=learning_rate)

        self.batch_uids = np.zeros(minibatch_size, dtype=np.int64)
        self.batch_positives = np.zeros(minibatch_size, dtype=np.int64)
        self.batch_negatives = np.zeros(minibatch_size, dtype=np.int64)

        self.user_idx = torch.from_numpy(self.batch_uids)
        self.positive_item_idx = torch.from_numpy(self.batch_positives)
        self.negative_item_idx = torch.from_numpy(self.batch_negatives)

        self.loss: torch.Tensor | None = None

    def forward(self) -> torch.Tensor:
        """Per-example loss of the current minibatch."""
        d = self.data
        positive_scores, negative_scores = pairwise_scores(
            gather(d.user_embedding, self.user_idx),
            gather(d.item_embedding, self.positive_item_idx),
            gather(d.item_embedding, self.negative_item_idx),
            gather(d.item_biases, self.positive_item_idx),
            gather(d.item_biases, self.negative_item_idx),
        )
        self.loss = sigmoid_ranking_loss(positive_scores, negative_scores)
        return self.loss

    def backward(self, seed: float = 1.0) -> None:
        self.loss.backward(torch.full_like(self.loss, seed))

    def step(self) -> None:
        """Plain SGD written straight into the shared tables, no locking."""
        self.optimiser.step()

    def zero_gradient(self) -> None:
        self.optimiser.zero_grad(set_to_none=True)
        self.loss = None


def train_shard(
    graph: PairwiseGraph,
    user_ids: np.ndarray,
    item_ids: np.ndarray,
    *,
    num_epochs: int,
    num_items: int,
    rng: np.random.Generator,
) -> float | None:
    """Run every epoch over one contiguous shard.

    Windows shorter than the minibatch size are skipped. Negatives are drawn
    uniformly from the whole catalogue and may coincide with a positive.

    Returns
    -------
    float | None
        Summed loss divided by `num_epochs * len(shard)`, or None for an empty shard.
    """
    shard_size = len(user_ids)
    if shard_size == 0:
        return None

    minibatch_size = len(graph.batch_uids)
    loss_value = 0.0

    for _ in range(num_epochs):
        for start in range(0, shard_size - minibatch_size + 1, minibatch_size):
            stop = start + minibatch_size
            graph.batch_uids[:] = user_ids[start:stop]
            graph.batch_positives[:] = item_ids[start:stop]
            graph.batch_negatives[:] = rng.integers(0, num_items, size=minibatch_size)

            loss = graph.forward()
            graph.backward(1.0)

            loss_value += loss.detach().sum().item()

            graph.step()
            graph.zero_gradient()

    return loss_value / (num_epochs * shard_size)


def fit_shards(
    data: ModelData,
    user_ids: np.ndarray,
    item_ids: np.ndarray,
    *,
    hyper: Hyperparameters,
    num_epochs: int,
    num_threads: int,
    seed_sequence: np.random.SeedSequence,
) -> float:
    """Split the data into `num_threads` equal shards and train them concurrently.

    The remainder past `num_threads * shard_size` is not trained on. The
    returned value is the **sum** of the per-shard mean losses.
    """
    shard_size = len(user_ids) // num_threads
    dropped = len(user_ids) - shard_size * num_threads

    logger.info(
        f"Training on {len(user_ids):,} interactions | shards: {num_threads} x {shard_size:,} "
        f"| dropped: {dropped:,} | epochs: {num_epochs}"
    )
    if shard_size < hyper.minibatch_size:
        logger.warning(
            f"Shard size {shard_size} is below minibatch size {hyper.minibatch_size}; no updates will be made."
        )

    worker_seeds = seed_sequence.spawn(num_threads)

    with ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix="hogwild") as pool:
        futures = []
        for partition_idx in range(num_threads):
            start = partition_idx * shard_size
            stop = start + shard_size
            futures.append(
                pool.submit(
                    train_shard,
                    PairwiseGraph(data.shared(), hyper.minibatch_size, hyper.learning_rate),
                    user_ids[start:stop],
                    item_ids[start:stop],
                    num_epochs=num_epochs,
                    num_items=data.num_items,
                    rng=np.random.default_rng(worker_seeds[partition_idx]),
                )
            )
        losses = [future.result() for future in futures]

    return float(sum(loss for loss in losses if loss is not None))
