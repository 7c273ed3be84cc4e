import pandas as pd

from hogwild_mf.config import Hyperparameters
from hogwild_mf.data.interactions import InteractionMatrix, train_test_split
from hogwild_mf.data.preprocess import InteractionPreprocessor
from hogwild_mf.engine.metrics import mrr_score
from hogwild_mf.models.factorization import ImplicitFactorizationModel
from hogwild_mf.utils.logger import setup_logger


logger = setup_logger(__name__)


def run_pipeline(
    interactions: pd.DataFrame,
    *,
    user_col: str = "user_id",
    item_col: str = "item_id",
    min_interactions: int = 1,
    hyper: Hyperparameters | None = None,
    num_epochs: int = 10,
    test_fraction: float = 0.2,
    num_threads: int | None = None,
    seed: int = 42,
):
    """End‑to‑end run: preprocess → split → train → evaluate.

    Parameters
    ----------
    interactions : pd.DataFrame
        Raw implicit feedback with one row per observed (user, item) pair.
    user_col, item_col : str, optional
        Names of the raw id columns, by default 'user_id' and 'item_id'.
    min_interactions : int, optional
        Minimum number of interactions required for users and items during
        filtering, by default 1.
    hyper : Hyperparameters, optional
        Training configuration, defaults to `Hyperparameters()`.
    num_epochs : int, optional
        Passes over the training split, by default 10.
    test_fraction : float, optional
        Share of interactions held out for evaluation, by default 0.2.
    num_threads : int, optional
        Worker pool size for training and evaluation, by default all cores.
    seed : int, optional
        Seed for the split, the initialisation and negative sampling, by default 42.

    Returns
    -------
    model : ImplicitFactorizationModel
        Trained model instance.
    metrics : dict[str, float]
        Keys 'loss', 'train_mrr' and 'test_mrr'.
    """
    prep = InteractionPreprocessor(
        interactions, user_col=user_col, item_col=item_col, min_interactions=min_interactions
    )
    prep.process()
    records = prep.interactions()

    train, test = train_test_split(records, seed, test_fraction)
    logger.info(f"Train interactions: {len(train):,}  |  test interactions: {len(test):,}")

    model = ImplicitFactorizationModel(hyper, num_threads=num_threads, random_state=seed)
    loss = model.fit(train, num_epochs)

    # matrices span the full encoded id space; the model only knows ids seen in train
    num_users, num_items = prep.num_users(), prep.num_items()
    train_mat = InteractionMatrix.from_interactions(num_users, num_items, train)
    test_mat = InteractionMatrix.from_interactions(
        num_users,
        num_items,
        [x for x in test if x.user_id < model.num_users and x.item_id < model.num_items],
    )

    metrics = {
        "loss": loss,
        "train_mrr": mrr_score(model, train_mat, InteractionMatrix(num_users, num_items)),
        "test_mrr": mrr_score(model, test_mat, train_mat),
    }

    for k, v in metrics.items():
        logger.info(f"  {k}: {v:.4f}")

    return model, metrics
