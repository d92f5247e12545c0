"""nn.modules -- Layers that add weights and operations to a Graph."""

import math

import numpy as np

from ..graph import Graph
from ..kernels import Activation
from ..operations import Activate, Affine, Concat, SparseAffine
from ..shape import Shape


class Linear:
    """y = weight @ x + bias"""
    op = Affine

    def __init__(self, graph, in_features, out_features, name, rng=None):
        rng = rng if rng is not None else np.random.default_rng()
        bound = 1 / math.sqrt(in_features)
        self.graph = graph
        self.weight = graph.add_weights(Shape(out_features, in_features), f'{name}w')
        self.bias = graph.add_weights(Shape(out_features, 1), f'{name}b')
        graph.tensor(self.weight).load_dense(rng.uniform(-bound, bound, out_features * in_features))
        graph.tensor(self.bias).load_dense(rng.uniform(-bound, bound, out_features))

    def __call__(self, x):
        return self.graph.add_operation(self.op(), [self.weight, x, self.bias])


class SparseLinear(Linear):
    """Linear over a sparse input -- the feature transformer."""
    op = SparseAffine


class PerspectiveNetwork:
    """Two-perspective NNUE: (stm, nstm) features -> shared transformer -> 1 output.

    Both perspectives go through the same feature transformer; the two
    accumulators are concatenated side-to-move first, activated, and reduced
    to a single evaluation by a linear output layer.
    """
    def __init__(self, input_type, hidden, activation=Activation.SCReLU, graph=None, seed=None):
        self.input_type = input_type
        self.hidden = hidden
        self.graph = g = graph if graph is not None else Graph()
        rng = np.random.default_rng(seed)

        shape = Shape(input_type.inputs(), 1)
        self.stm = g.add_sparse_input(shape, input_type.max_active(), 'stm')
        self.nstm = g.add_sparse_input(shape, input_type.max_active(), 'nstm')

        self.ft = SparseLinear(g, input_type.inputs(), hidden, 'l0', rng)
        accs = g.add_operation(Concat(), [self.ft(self.stm), self.ft(self.nstm)])
        self.hidden_layer = g.add_operation(Activate(activation), [accs])
        self.out = Linear(g, 2 * hidden, 1, 'l1', rng)
        self.output = self.out(self.hidden_layer)

    def load_features(self, pos):
        stm, nstm = [], []
        for s, n in self.input_type.feature_iter(pos):
            stm.append(s)
            nstm.append(n)
        self.graph.tensor(self.stm).load_sparse(stm)
        self.graph.tensor(self.nstm).load_sparse(nstm)

    def evaluate(self, pos):
        self.load_features(pos)
        self.graph.forward()
        return float(self.graph.tensor(self.output).values.view(1)[0])

    def backprop(self, err):
        """Add d(loss)/d(weights) for the last evaluated position, given d(loss)/d(eval)."""
        self.graph.seed_gradient(self.output, [err])
        self.graph.backward()
