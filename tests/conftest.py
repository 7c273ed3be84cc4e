import pytest
import torch

from hogwild_mf.config import Hyperparameters
from hogwild_mf.data.interactions import UnweightedInteraction
from hogwild_mf.models.factorization import ImplicitFactorizationModel


def build_fitted_model(num_users: int, num_items: int, latent_dim: int = 1) -> ImplicitFactorizationModel:
    """A model whose tables span `num_users` x `num_items`, left at their initial values."""
    hyper = Hyperparameters(latent_dim=latent_dim, minibatch_size=1, learning_rate=0.0)
    model = ImplicitFactorizationModel(hyper, num_threads=1, random_state=0)
    model.fit([UnweightedInteraction(num_users - 1, num_items - 1)], num_epochs=1)
    return model


def set_tables(model, user_embedding, item_embedding, item_biases) -> None:
    d = model.model_data
    with torch.no_grad():
        d.user_embedding.weight.copy_(torch.tensor(user_embedding, dtype=torch.float32))
        d.item_embedding.weight.copy_(torch.tensor(item_embedding, dtype=torch.float32))
        d.item_biases.weight.copy_(torch.tensor(item_biases, dtype=torch.float32).reshape(-1, 1))


@pytest.fixture
def interactions():
    pairs = [(0, 0), (0, 1), (1, 2), (2, 3), (3, 1), (1, 4), (2, 0), (3, 3), (0, 4), (1, 1), (2, 2), (3, 0)]
    return [UnweightedInteraction(u, i) for u, i in pairs]
