"""Tests for nnuegrad.nn layers, networks and state dicts."""

import numpy as np
import pytest

from nnuegrad import Activation, Graph, Shape
from nnuegrad.nn import (
    Linear, SparseLinear, PerspectiveNetwork,
    get_parameters, get_state_dict, load_state_dict,
)
from nnuegrad.trainer import Ataxx147, Position


def approx(a, b, tol=1e-5):
    return np.allclose(a, b, atol=tol)


# ── Linear ──

class TestLinear:
    def test_weights_registered(self):
        g = Graph()
        m = Linear(g, 3, 2, 'fc', rng=np.random.default_rng(0))
        assert g.weight_names() == ['fcw', 'fcb']
        assert g.node(m.weight).shape == Shape(2, 3)
        assert g.node(m.bias).shape == Shape(2, 1)

    def test_init_bounded(self):
        g = Graph()
        m = Linear(g, 4, 8, 'fc', rng=np.random.default_rng(0))
        w = g.tensor(m.weight).numpy()
        assert np.all(np.abs(w) <= 0.5)
        assert not np.all(w == 0)

    def test_forward(self):
        g = Graph()
        m = Linear(g, 2, 1, 'fc')
        x = g.add_input(Shape(2, 1))
        y = m(x)
        g.tensor(m.weight).load_dense([[2.0, -1.0]])
        g.tensor(m.bias).load_dense([0.5])
        g.tensor(x).load_dense([3.0, 1.0])
        g.forward()
        assert g.tensor(y).numpy()[0, 0] == pytest.approx(5.5)

    def test_sparse_forward(self):
        g = Graph()
        m = SparseLinear(g, 4, 2, 'ft')
        x = g.add_sparse_input(Shape(4, 1), 4)
        y = m(x)
        g.tensor(m.weight).load_dense(np.arange(8, dtype=np.float32).reshape(2, 4))
        g.tensor(m.bias).load_dense([0.0, 0.0])
        g.tensor(x).load_sparse([1, 3])
        g.forward()
        np.testing.assert_allclose(g.tensor(y).numpy().reshape(-1), [1 + 3, 5 + 7])


# ── PerspectiveNetwork ──

def board():
    return Position([(0, 0), (0, 8), (1, 40), (1, 48), (2, 24)], score=50, result=1.0)


class TestPerspectiveNetwork:
    def test_structure(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        g = net.graph
        assert g.weight_names() == ['l0w', 'l0b', 'l1w', 'l1b']
        assert g.node(net.hidden_layer).shape == Shape(16, 1)
        assert g.node(net.output).shape == Shape(1, 1)
        assert g.output == net.output

    def test_evaluate_deterministic(self):
        a = PerspectiveNetwork(Ataxx147(), 8, seed=1)
        b = PerspectiveNetwork(Ataxx147(), 8, seed=1)
        assert a.evaluate(board()) == b.evaluate(board())

    def test_load_features(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        net.load_features(board())
        stm = net.graph.tensor(net.stm)
        nstm = net.graph.tensor(net.nstm)
        assert stm.nnz == nstm.nnz == 5
        np.testing.assert_array_equal(stm.numpy(), [0, 8, 89, 97, 122])
        np.testing.assert_array_equal(nstm.numpy(), [49, 57, 40, 48, 122])

    def test_evaluate_matches_numpy(self):
        net = PerspectiveNetwork(Ataxx147(), 4, activation=Activation.CReLU, seed=3)
        g = net.graph
        w0, b0 = g.weights('l0w').numpy(), g.weights('l0b').numpy().reshape(-1)
        w1, b1 = g.weights('l1w').numpy(), g.weights('l1b').numpy().reshape(-1)
        stm = [0, 8, 89, 97, 122]
        nstm = [49, 57, 40, 48, 122]
        acc = np.concatenate([b0 + w0[:, stm].sum(axis=1), b0 + w0[:, nstm].sum(axis=1)])
        expected = (w1 @ np.clip(acc, 0, 1) + b1)[0]
        assert net.evaluate(board()) == pytest.approx(expected, rel=1e-5, abs=1e-6)

    def test_backprop_output_layer(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        g = net.graph
        g.zero_grad()
        net.evaluate(board())
        net.backprop(0.25)
        assert g.weights('l1b').grad_numpy()[0, 0] == pytest.approx(0.25)
        hidden = g.tensor(net.hidden_layer).numpy().reshape(-1)
        assert approx(g.weights('l1w').grad_numpy().reshape(-1), 0.25 * hidden)

    def test_backprop_sums_positions(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        g = net.graph
        g.zero_grad()
        net.evaluate(board())
        net.backprop(0.25)
        net.evaluate(board())
        net.backprop(0.25)
        once = g.weights('l0w').grad_numpy().copy()
        g.zero_grad()
        net.evaluate(board())
        net.backprop(0.5)
        assert approx(once, g.weights('l0w').grad_numpy())


# ── State dict ──

class TestStateDict:
    def test_get_state_dict(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        state = get_state_dict(net.graph)
        assert set(state) == {'l0w', 'l0b', 'l1w', 'l1b'}
        assert state['l0w'].shape == (147 * 4,)

    def test_get_parameters(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        params = get_parameters(net.graph)
        assert len(params) == 4
        assert all(p.requires_grad for p in params)

    def test_load_state_dict(self):
        src = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        dst = PerspectiveNetwork(Ataxx147(), 4, seed=1)
        load_state_dict(dst.graph, get_state_dict(src.graph))
        assert src.evaluate(board()) == dst.evaluate(board())

    def test_load_state_dict_strict(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        state = get_state_dict(net.graph)
        with pytest.raises(KeyError):
            load_state_dict(net.graph, dict(state, extra=np.zeros(1)))
        del state['l1b']
        with pytest.raises(KeyError):
            load_state_dict(net.graph, state)
        load_state_dict(net.graph, state, strict=False)
