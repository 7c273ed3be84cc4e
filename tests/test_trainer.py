import numpy as np
import pytest
import torch
import torch.nn as nn

from hogwild_mf.engine.trainer import ModelData, PairwiseGraph, embedding_init


@pytest.fixture
def data():
    return ModelData.build(3, 4, latent_dim=2, rng=np.random.default_rng(0))


def test_tables_are_sparse_embeddings(data):
    assert isinstance(data, nn.Module)
    for table in (data.user_embedding, data.item_embedding, data.item_biases):
        assert isinstance(table, nn.Embedding)
        assert table.sparse
    assert (data.num_users, data.num_items) == (3, 4)
    assert data.item_biases.weight.shape == (4, 1)


def test_embedding_init_is_scaled_uniform():
    values = embedding_init(100, 4, np.random.default_rng(1))
    assert values.dtype == torch.float32
    assert values.min() >= 0 and values.max() < 0.5


def test_shared_handle_reuses_storage_with_separate_parameters(data):
    handle = data.shared()

    assert handle.user_embedding.weight is not data.user_embedding.weight
    assert handle.user_embedding.weight.data_ptr() == data.user_embedding.weight.data_ptr()
    assert handle.item_embedding.weight.data_ptr() == data.item_embedding.weight.data_ptr()
    assert handle.item_biases.weight.data_ptr() == data.item_biases.weight.data_ptr()


def test_sgd_step_updates_only_touched_rows_of_the_shared_tables(data):
    before = {
        name: table.weight.detach().clone()
        for name, table in data.named_children()
    }
    graph = PairwiseGraph(data.shared(), minibatch_size=1, learning_rate=0.5)
    graph.batch_uids[:] = [0]
    graph.batch_positives[:] = [1]
    graph.batch_negatives[:] = [2]

    loss = graph.forward()
    graph.backward(1.0)
    graph.step()
    graph.zero_gradient()

    # d(-sigmoid(diff)) / d(positive bias) = -s * (1 - s)
    u = before["user_embedding"][0]
    diff = (u @ before["item_embedding"][1] + before["item_biases"][1, 0]) - (
        u @ before["item_embedding"][2] + before["item_biases"][2, 0]
    )
    s = torch.sigmoid(diff)
    assert loss.item() == pytest.approx(-s.item(), rel=1e-6)

    biases = data.item_biases.weight.detach()
    assert biases[1, 0].item() == pytest.approx((before["item_biases"][1, 0] + 0.5 * s * (1 - s)).item(), rel=1e-6)
    assert biases[2, 0].item() == pytest.approx((before["item_biases"][2, 0] - 0.5 * s * (1 - s)).item(), rel=1e-6)

    assert torch.equal(data.user_embedding.weight.detach()[1:], before["user_embedding"][1:])
    assert not torch.equal(data.user_embedding.weight.detach()[0], before["user_embedding"][0])
    for row in (0, 3):
        assert torch.equal(data.item_embedding.weight.detach()[row], before["item_embedding"][row])
        assert torch.equal(biases[row], before["item_biases"][row])


def test_zero_gradient_clears_worker_gradients(data):
    graph = PairwiseGraph(data.shared(), minibatch_size=2, learning_rate=0.1)
    graph.forward()
    graph.backward()
    assert graph.data.user_embedding.weight.grad is not None

    graph.zero_gradient()

    for param in graph.data.parameters():
        assert param.grad is None
    # the owning tables never collect gradients
    for param in data.parameters():
        assert param.grad is None
