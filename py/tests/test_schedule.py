"""Tests for learning-rate, WDL and loss schedules."""

import math

import pytest

from nnuegrad.trainer import (
    ConstantLR, ConstantWDL, CosineAnnealingLR, DropLR, LinearWDL, SigmoidMPE, SigmoidMSE,
    StepLR, StepLRWithWarmup, TrainingSchedule, ansi,
)


class TestLR:
    def test_constant(self):
        assert ConstantLR(0.01).lr(1) == 0.01
        assert ConstantLR(0.01).lr(1000) == 0.01

    def test_drop(self):
        s = DropLR(1.0, 0.5, 10)
        assert s.lr(10) == 1.0
        assert s.lr(11) == 0.5

    def test_step(self):
        s = StepLR(0.001, 0.1, 8)
        assert s.lr(1) == pytest.approx(0.001)
        assert s.lr(8) == pytest.approx(0.001)
        assert s.lr(9) == pytest.approx(0.0001)
        assert s.lr(17) == pytest.approx(0.00001)

    def test_step_with_warmup(self):
        s = StepLRWithWarmup(1.0, 0.5, 2, warmup_batches=3, warmup_lr=0.1)
        assert s.lr(1) == pytest.approx(0.1)
        assert s.lr(3) == pytest.approx(0.05)
        assert s.lr(4) == pytest.approx(1.0)
        assert s.lr(6) == pytest.approx(0.5)


class TestCosineAnnealing:
    def test_cycle_lengths_double(self):
        s = CosineAnnealingLR(1.0, 1.0, 10)
        assert [s.cycle_length(sb) for sb in (5, 15, 20, 39, 40, 79, 80, 1000)] == \
            [10, 10, 20, 20, 40, 40, 80, 80]

    def test_values(self):
        s = CosineAnnealingLR(1.0, 1.0, 10)
        assert s.lr(10) == pytest.approx(0.5 * (2.0 + 1e-5))
        assert s.lr(5) == pytest.approx(0.5 * (1.0 + 1e-5))
        # halfway through the second, 20-long cycle
        assert s.lr(30) == pytest.approx(0.5 * (1.0 + 1e-5))

    def test_never_zero(self):
        s = CosineAnnealingLR(1.0, 1.0, 4)
        assert min(s.lr(sb) for sb in range(1, 200)) > 0.0

    def test_decay(self):
        s = CosineAnnealingLR(1.0, 0.9, 10)
        assert s.lr(10) == pytest.approx(0.5 * 0.9 ** 10 * (2.0 + 1e-5))
        assert s.lr(3) == pytest.approx(0.5 * 0.9 ** 3 * (1.0 + 1e-5 + math.cos(math.pi * 0.3)))


class TestWDL:
    def test_constant(self):
        assert ConstantWDL(0.3).blend(5, 10) == 0.3

    def test_linear(self):
        s = LinearWDL(0.0, 1.0)
        assert s.blend(1, 11) == pytest.approx(0.0)
        assert s.blend(6, 11) == pytest.approx(0.5)
        assert s.blend(11, 11) == pytest.approx(1.0)

    def test_linear_single_superbatch(self):
        assert LinearWDL(0.2, 0.8).blend(1, 1) == pytest.approx(0.2)


class TestLoss:
    def test_mse(self):
        loss = SigmoidMSE()
        assert loss.power() == 2.0
        assert loss.derivative(0.75, 0.25) == pytest.approx(0.5 * 0.75 * 0.25)
        assert loss.error(0.75, 0.25) == pytest.approx(0.25)

    def test_mpe_power_two_matches_mse(self):
        mse, mpe = SigmoidMSE(), SigmoidMPE(2.0)
        for p, t in [(0.9, 0.1), (0.2, 0.6), (0.5, 0.5)]:
            assert mpe.derivative(p, t) == pytest.approx(mse.derivative(p, t))
            assert mpe.error(p, t) == pytest.approx(mse.error(p, t))

    def test_mpe_sign(self):
        loss = SigmoidMPE(2.5)
        assert loss.derivative(0.2, 0.6) < 0
        assert loss.derivative(0.6, 0.2) > 0
        assert loss.error(0.2, 0.6) == pytest.approx(0.4 ** 2.5)


class TestTrainingSchedule:
    def make(self, **kwargs):
        defaults = dict(end_superbatch=12, save_rate=5, lr_scheduler=StepLR(0.001, 0.1, 4),
                        wdl_scheduler=LinearWDL(0.0, 1.0))
        defaults.update(kwargs)
        return TrainingSchedule('test', **defaults)

    def test_should_save(self):
        s = self.make()
        assert s.should_save(5)
        assert s.should_save(10)
        assert s.should_save(12)
        assert not s.should_save(7)

    def test_delegates(self):
        s = self.make()
        assert s.lr(5) == pytest.approx(0.0001)
        assert s.wdl(12) == pytest.approx(1.0)
        assert s.power() == 2.0
        assert self.make(loss_function=SigmoidMPE(2.6)).power() == 2.6

    def test_invalid(self):
        with pytest.raises(ValueError):
            self.make(save_rate=0)
        with pytest.raises(ValueError):
            self.make(start_superbatch=5, end_superbatch=2)

    def test_display(self):
        lines = []
        self.make().display(lines.append)
        assert len(lines) == 10
        assert lines[0].startswith('Scale')
        assert ansi(400, 31) in lines[0]
        assert lines[1].startswith('1 / FT Regularisation')
        assert ansi('inf', 31) in lines[1]
        assert 'drop every' in lines[-1]

    def test_ft_regularisation_display(self):
        lines = []
        s = self.make(ft_regularisation=0.01)
        assert s.ft_regularisation == 0.01
        s.display(lines.append)
        assert ansi('100', 31) in lines[1]


def test_ansi():
    assert ansi('x', 31) == '\x1b[31mx\x1b[0m'
