from concurrent.futures import ThreadPoolExecutor

import numpy as np
from tqdm.auto import tqdm

from hogwild_mf.data.interactions import InteractionMatrix
from hogwild_mf.errors import InvalidIndex, NotFitted
from hogwild_mf.models.factorization import ImplicitFactorizationModel
from hogwild_mf.utils.logger import setup_logger

logger = setup_logger(__name__)

# lower than any finite float32 score a model can produce
SUPPRESSED_SCORE = np.finfo(np.float32).min


def _reciprocal_rank(
    model: ImplicitFactorizationModel,
    user_id: int,
    test_row: tuple[int, ...],
    train_row: tuple[int, ...],
) -> float:
    """Mean 1/rank of the user's held-out items, train items taken out of contention."""
    predictions = model.predict(user_id)

    test_idx = np.asarray(test_row, dtype=np.int64)
    train_idx = np.asarray(train_row, dtype=np.int64)
    if test_idx.max() >= len(predictions) or (train_idx.size and train_idx.max() >= len(predictions)):
        raise InvalidIndex(f"Items of user {user_id} exceed the model's {len(predictions)} items.")

    predictions[train_idx] = SUPPRESSED_SCORE
    test_scores = predictions[test_idx]

    # ties count against the item: rank = #items scoring >= it, itself included
    ascending = np.sort(predictions)
    ranks = len(ascending) - np.searchsorted(ascending, test_scores, side="left")
    return float(np.mean(1.0 / ranks))


def mrr_score(
    model: ImplicitFactorizationModel,
    test: InteractionMatrix,
    train: InteractionMatrix,
    *,
    num_threads: int | None = None,
    show_progress: bool = False,
) -> float:
    """Mean Reciprocal Rank of held-out items over the full catalogue.

    Every item a user has in *train* is pushed to the bottom of their ranking
    first. Users without test items are left out of the average.
    """
    if not model.is_fitted:
        raise NotFitted("Model must be fitted first.")
    if (test.num_users, test.num_items) != (train.num_users, train.num_items):
        raise InvalidIndex(
            f"Test matrix is {test.num_users}x{test.num_items} "
            f"but train matrix is {train.num_users}x{train.num_items}."
        )

    users = [
        (user_id, test_row, train_row)
        for user_id, (test_row, train_row) in enumerate(zip(test.rows(), train.rows()))
        if test_row
    ]
    if not users:
        logger.warning("No user has test interactions; MRR is reported as 0.")
        return 0.0

    with ThreadPoolExecutor(max_workers=num_threads or model.num_threads) as pool:
        mrrs = list(
            tqdm(
                pool.map(lambda args: _reciprocal_rank(model, *args), users),
                total=len(users),
                desc="Evaluating",
                unit="user",
                disable=not show_progress,
            )
        )

    return float(np.mean(mrrs))
