"""Module containing the pairwise loss used in model training."""
import torch

from hogwild_mf.engine.ops import sigmoid, subtract


def sigmoid_ranking_loss(
    pos_scores: torch.Tensor,
    neg_scores: torch.Tensor,
) -> torch.Tensor:
    """Computes the per-example sigmoid ranking loss `-sigmoid(pos - neg)`.

    Like BPR it pushes the score of an observed item above the score of a
    sampled one, but it uses the sigmoid of the score difference directly
    instead of its logarithm, so the gradient vanishes for pairs that are
    already ranked well *and* for pairs ranked very badly.

    Args:
        pos_scores (torch.Tensor): Scores of positive items; shape [batch_size].
        neg_scores (torch.Tensor): Scores of sampled negative items for the
            same users; shape [batch_size].

    Returns:
        torch.Tensor: Loss per example, shape [batch_size], each in (-1, 0).
    """
    return -sigmoid(subtract(pos_scores, neg_scores))
