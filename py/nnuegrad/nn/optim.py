"""nn.optim -- Parameter update rules for graph weights."""

from .. import kernels
from ..device import DeviceBuffer


def _ctx(ctx):
    from .. import default_context
    return ctx or default_context()


def adam(size, params, gradient, momentum, velocity, beta1, beta2,
         gradient_factor, learning_rate, denom, ctx=None):
    """Adaptive-moment update of the first `size` parameters, in place.

    The gradient is scaled by `gradient_factor`, folded into the momentum and
    velocity moving averages, and the parameters step by
    `learning_rate * momentum / (sqrt(velocity) + eps)`, or by
    `learning_rate * momentum` when `denom` is false. Raises CapacityError
    without touching any buffer if `size` exceeds any of the four.
    """
    kernels.adam(_ctx(ctx), size, params, gradient, momentum, velocity,
                 beta1, beta2, gradient_factor, learning_rate, denom)


def clip(size, params, min_, max_, ctx=None):
    """Clamp the first `size` parameters to [min_, max_] in place."""
    kernels.clip(_ctx(ctx), size, params, min_, max_)


class Optimiser:
    """Base optimiser.

    Owns a momentum and a velocity buffer per weight of the graph, keyed by
    the weight's name. The weights themselves stay owned by the graph.
    """
    def __init__(self, graph):
        self.graph = graph
        self.params = {name: graph.weights(name) for name in graph.weight_names()}
        self.momentum = {name: DeviceBuffer(p.values.size()) for name, p in self.params.items()}
        self.velocity = {name: DeviceBuffer(p.values.size()) for name, p in self.params.items()}

    def zero_grad(self):
        self.graph.zero_grad()

    def step(self, gradient_factor, learning_rate):
        raise NotImplementedError

    def _adam(self, name, p, gradient_factor, learning_rate, beta1, beta2, denom):
        adam(p.values.size(), p.values, p.gradients, self.momentum[name], self.velocity[name],
             beta1, beta2, gradient_factor, learning_rate, denom, ctx=self.graph.ctx)


class Adam(Optimiser):
    """Adam without bias correction."""
    def __init__(self, graph, beta1=0.9, beta2=0.999):
        super().__init__(graph)
        self.beta1 = beta1
        self.beta2 = beta2

    def step(self, gradient_factor, learning_rate):
        for name, p in self.params.items():
            self._adam(name, p, gradient_factor, learning_rate, self.beta1, self.beta2, True)


class AdamW(Adam):
    """Adam with decoupled weight decay, then weights clipped to [min_weight, max_weight]."""
    def __init__(self, graph, beta1=0.9, beta2=0.999, decay=0.01, min_weight=-1.98, max_weight=1.98):
        super().__init__(graph, beta1, beta2)
        self.decay = decay
        self.min_weight = min_weight
        self.max_weight = max_weight

    def step(self, gradient_factor, learning_rate):
        ctx = self.graph.ctx
        for name, p in self.params.items():
            size = p.values.size()
            if self.decay:
                kernels.scale(ctx, size, p.values, 1 - learning_rate * self.decay)
            self._adam(name, p, gradient_factor, learning_rate, self.beta1, self.beta2, True)
            clip(size, p.values, self.min_weight, self.max_weight, ctx=ctx)


class Momentum(Optimiser):
    """Momentum descent: the Adam update without the velocity denominator."""
    def __init__(self, graph, beta=0.9):
        super().__init__(graph)
        self.beta = beta

    def step(self, gradient_factor, learning_rate):
        for name, p in self.params.items():
            self._adam(name, p, gradient_factor, learning_rate, self.beta, 0.999, False)
