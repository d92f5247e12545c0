"""Graph -- an arena of operation nodes over device-backed tensors.

Nodes are appended in build order and addressed by integer handles. A node's
parents must already exist when it is added, so build order is a valid
topological order: forward() walks it front to back and backward() back to
front. Shapes are inferred and validated once, in add_operation(); nothing is
re-checked when the graph runs.
"""

import logging

from .device import DeviceError
from .shape import ShapeError
from .tensor import Tensor

logger = logging.getLogger(__name__)

INPUT = 'input'
SPARSE_INPUT = 'sparse_input'
WEIGHTS = 'weights'
OPERATION = 'operation'


class OpError(DeviceError):
    """A kernel failed while running a node."""

    def __init__(self, node, cause):
        self.node = node
        self.cause = cause
        super().__init__(f'{node.op.name} at node {node.handle} ({node.name}) failed: {cause}')


class Node:
    __slots__ = ('handle', 'kind', 'op', 'parents', 'shape', 'name')

    def __init__(self, handle, kind, shape, name, op=None, parents=()):
        self.handle = handle
        self.kind = kind
        self.shape = shape
        self.name = name
        self.op = op
        self.parents = tuple(parents)

    def __repr__(self):
        if self.op is None:
            return f'Node({self.handle}, {self.kind}, {self.shape}, {self.name!r})'
        return f'Node({self.handle}, {self.op!r}, parents={list(self.parents)}, {self.shape})'


class Graph:
    def __init__(self, ctx=None):
        from . import default_context
        self.ctx = ctx or default_context()
        self._nodes = []
        self._tensors = []
        self._weights = {}

    # ── Building ─────────────────────────────────────────────────────

    def _push(self, kind, shape, name, tensor, op=None, parents=()):
        handle = len(self._nodes)
        if name is None:
            name = f'{op.name if op is not None else kind}_{handle}'
        node = Node(handle, kind, shape, name, op=op, parents=parents)
        self._nodes.append(node)
        self._tensors.append(tensor)
        logger.debug('graph: added %r', node)
        return handle

    def add_input(self, shape, name=None):
        return self._push(INPUT, shape, name, Tensor(shape))

    def add_sparse_input(self, shape, max_active, name=None):
        if not shape.is_vector():
            raise ShapeError(f'sparse input must be a vector, got {shape}')
        return self._push(SPARSE_INPUT, shape, name, Tensor(shape, max_active=max_active))

    def add_weights(self, shape, name):
        if name in self._weights:
            raise ValueError(f'duplicate weights name: {name!r}')
        handle = self._push(WEIGHTS, shape, name, Tensor(shape, requires_grad=True))
        self._weights[name] = handle
        return handle

    def add_operation(self, op, parents):
        """Append `op` applied to `parents`, returning the new node's handle.

        Raises ShapeError if the parents' shapes (or sparsity) do not fit the
        operation; the graph is left unchanged in that case.
        """
        parents = [self._resolve(h) for h in parents]
        shape = op.shape_of([self._nodes[h].shape for h in parents])
        for i, h in enumerate(parents):
            sparse = self._tensors[h].is_sparse
            if sparse and i not in op.sparse_inputs:
                raise ShapeError(f'{op.name}: input {i} ({self._nodes[h].name}) must not be sparse')
            if not sparse and i in op.sparse_inputs:
                raise ShapeError(f'{op.name}: input {i} ({self._nodes[h].name}) must be sparse')
        requires_grad = any(self._tensors[h].requires_grad for h in parents)
        return self._push(OPERATION, shape, None, Tensor(shape, requires_grad=requires_grad),
                          op=op, parents=parents)

    def _resolve(self, handle):
        if not isinstance(handle, int) or not 0 <= handle < len(self._nodes):
            raise ValueError(f'unknown node handle: {handle!r}')
        return handle

    # ── Running ──────────────────────────────────────────────────────

    def forward(self, ctx=None):
        ctx = ctx or self.ctx
        for node in self._nodes:
            if node.op is None:
                continue
            inputs = [self._tensors[h] for h in node.parents]
            try:
                node.op.forward(ctx, inputs, self._tensors[node.handle])
            except DeviceError as e:
                raise OpError(node, e) from e

    def backward(self, ctx=None):
        """Accumulate gradients into every parent, in reverse build order.

        The output's gradient must have been seeded (see seed_gradient) and
        all gradients zeroed since the previous optimisation step.
        """
        ctx = ctx or self.ctx
        for node in reversed(self._nodes):
            output = self._tensors[node.handle]
            if node.op is None or output.gradients is None:
                continue
            inputs = [self._tensors[h] for h in node.parents]
            try:
                node.op.backward(ctx, output, inputs)
            except DeviceError as e:
                raise OpError(node, e) from e

    def zero_grad(self):
        for t in self._tensors:
            t.zero_grad()

    def seed_gradient(self, handle, values):
        """Start a backward pass from `handle` with upstream gradient `values`.

        Operation-node gradients belong to a single pass and restart from zero
        here. Weight gradients keep accumulating until zero_grad().
        """
        t = self._tensors[self._resolve(handle)]
        if t.gradients is None:
            raise ValueError(f'node {handle} does not require gradients')
        for node in self._nodes:
            if node.op is not None:
                self._tensors[node.handle].zero_grad()
        t.gradients.load_from_slice(values)

    # ── Lookup ───────────────────────────────────────────────────────

    def node(self, handle):
        return self._nodes[self._resolve(handle)]

    def tensor(self, handle):
        return self._tensors[self._resolve(handle)]

    def weights(self, name):
        return self._tensors[self._weights[name]]

    def weight_names(self):
        return list(self._weights)

    @property
    def output(self):
        if not self._nodes:
            raise ValueError('empty graph has no output')
        return len(self._nodes) - 1

    def __len__(self):
        return len(self._nodes)

    def __repr__(self):
        return f'Graph(nodes={len(self._nodes)}, weights={self.weight_names()})'
