"""Numeric building blocks of the pairwise scoring graph.

Each op is a thin torch function so autograd supplies its gradient; they are
kept separate so every stage of the pipeline can be checked on its own.
"""
import torch
import torch.nn as nn


def gather(embedding: nn.Embedding, index: torch.Tensor) -> torch.Tensor:
    """Rows `embedding.weight[index]`, shape (B, width), differentiable w.r.t. the table."""
    return embedding(index)


def row_dot(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Row-wise inner product of two (B, D) tensors → (B,)."""
    return (a * b).sum(dim=1)


def add_bias(scores: torch.Tensor, biases: torch.Tensor) -> torch.Tensor:
    """Add per-row biases of shape (B, 1) or (B,) to scores of shape (B,)."""
    return scores + biases.reshape(-1)


def subtract(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    return a - b


def sigmoid(x: torch.Tensor) -> torch.Tensor:
    return torch.sigmoid(x)


def pairwise_scores(
    user_vectors: torch.Tensor,
    positive_vectors: torch.Tensor,
    negative_vectors: torch.Tensor,
    positive_biases: torch.Tensor,
    negative_biases: torch.Tensor,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Scores of the positive and the sampled negative item for each user in the batch."""
    positive_scores = add_bias(row_dot(user_vectors, positive_vectors), positive_biases)
    negative_scores = add_bias(row_dot(user_vectors, negative_vectors), negative_biases)
    return positive_scores, negative_scores
