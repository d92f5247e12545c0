"""Tests for gradient accumulation and the training step."""

import numpy as np
import pytest

from nnuegrad.nn import AdamW, PerspectiveNetwork
from nnuegrad.trainer import (
    Ataxx147, ConstantLR, ConstantWDL, GradientAccumulator, Position, SigmoidMPE,
    Trainer, TrainingSchedule, sigmoid,
)


def positions():
    return [
        Position([(0, 0), (1, 48), (2, 24)], score=120, result=1.0),
        Position([(0, 10), (0, 11), (1, 30)], score=-80, result=0.0),
        Position([(1, 3), (1, 4), (0, 40), (2, 20)], score=10, result=0.5),
    ]


def grads(graph):
    return {name: graph.weights(name).grad_numpy().copy() for name in graph.weight_names()}


class TestGradientAccumulator:
    def test_error_and_count(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        acc = GradientAccumulator(net, scale=400.0)
        net.graph.zero_grad()
        error, count = acc.accumulate(positions(), blend=0.5)
        assert count == 3
        expected = 0.0
        for pos in positions():
            p = sigmoid(net.evaluate(pos))
            expected += (p - pos.blended_result(0.5, 400.0)) ** 2
        assert error == pytest.approx(expected, rel=1e-5)

    def test_sum_of_parts(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        acc = GradientAccumulator(net)
        g = net.graph

        g.zero_grad()
        acc.accumulate(positions(), 0.5)
        together = grads(g)

        parts = None
        for pos in positions():
            g.zero_grad()
            acc.accumulate([pos], 0.5)
            single = grads(g)
            parts = single if parts is None else {k: parts[k] + single[k] for k in parts}

        for name in together:
            np.testing.assert_allclose(together[name], parts[name], rtol=1e-5, atol=1e-7)

    def test_order_independent(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=2)
        acc = GradientAccumulator(net)
        net.graph.zero_grad()
        acc.accumulate(positions(), 0.3)
        forward = grads(net.graph)
        net.graph.zero_grad()
        acc.accumulate(list(reversed(positions())), 0.3)
        backward = grads(net.graph)
        for name in forward:
            np.testing.assert_allclose(forward[name], backward[name], rtol=1e-5, atol=1e-7)

    def test_output_bias_gradient(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        acc = GradientAccumulator(net)
        pos = positions()[0]
        net.graph.zero_grad()
        acc.accumulate([pos], 1.0)
        p = sigmoid(net.evaluate(pos))
        expected = (p - 1.0) * p * (1 - p)
        assert net.graph.weights('l1b').grad_numpy()[0, 0] == pytest.approx(expected, rel=1e-5)

    def test_skip_prop(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        batch = positions() * 20
        _, kept = GradientAccumulator(net, skip_prop=0.5, seed=7).accumulate(batch, 0.5)
        _, again = GradientAccumulator(net, skip_prop=0.5, seed=7).accumulate(batch, 0.5)
        assert 0 < kept < len(batch)
        assert kept == again

    def test_invalid_skip_prop(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        with pytest.raises(ValueError):
            GradientAccumulator(net, skip_prop=1.0)

    def test_power_loss(self):
        net = PerspectiveNetwork(Ataxx147(), 4, seed=0)
        acc = GradientAccumulator(net, loss=SigmoidMPE(3.0))
        pos = positions()[1]
        error, _ = acc.accumulate([pos], 1.0)
        p = sigmoid(net.evaluate(pos))
        assert error == pytest.approx(abs(p - 0.0) ** 3, rel=1e-5)


class TestTrainer:
    def make(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        schedule = TrainingSchedule('test', end_superbatch=10, lr_scheduler=ConstantLR(0.01),
                                    wdl_scheduler=ConstantWDL(1.0))
        return Trainer(net, AdamW(net.graph), schedule, GradientAccumulator(net))

    def test_error_decreases(self):
        trainer = self.make()
        batch = [positions()[0]]
        first = trainer.train_batch(batch, 1)
        for sb in range(2, 40):
            last = trainer.train_batch(batch, sb)
        assert last < first

    def test_weights_change(self):
        trainer = self.make()
        before = trainer.network.graph.weights('l1b').numpy().copy()
        trainer.train_batch(positions(), 1)
        assert not np.allclose(before, trainer.network.graph.weights('l1b').numpy())

    def test_empty_batch(self):
        trainer = self.make()
        assert trainer.train_batch([], 1) == 0.0


class TestSaturatedOutput:
    def test_large_negative_output(self):
        net = PerspectiveNetwork(Ataxx147(), 8, seed=0)
        net.graph.weights('l1b').load_dense([-1000.0])
        acc = GradientAccumulator(net)
        net.graph.zero_grad()
        error, count = acc.accumulate(positions(), 1.0)
        assert count == 3
        assert error == pytest.approx(1.0 + 0.0 + 0.25)
        for grad in grads(net.graph).values():
            assert np.all(np.isfinite(grad))
