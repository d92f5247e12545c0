"""Operations -- the node kinds a Graph can be built from.

Each operation is a small record of its own parameters with three methods:
shape_of() infers the output shape from the parents' shapes once, at build
time; forward() reads the parents' values into the output's values; and
backward() adds the output gradient's contribution into every parent that
has a gradient buffer.
"""

from . import kernels
from .kernels import Activation
from .shape import Shape, ShapeError


class Operation:
    name = 'operation'
    arity = None
    sparse_inputs = ()

    def shape_of(self, inputs):
        raise NotImplementedError

    def forward(self, ctx, inputs, output):
        raise NotImplementedError

    def backward(self, ctx, output, inputs):
        raise NotImplementedError

    def _check_arity(self, inputs):
        if len(inputs) != self.arity:
            raise ShapeError(f'invalid number of inputs to {self.name}: expected {self.arity}, got {len(inputs)}')

    def __repr__(self):
        return f'{type(self).__name__}()'


def _grad(t):
    return t.gradients


class Affine(Operation):
    """y = W x + b, parents (W, x, b)."""
    name = 'affine'
    arity = 3

    def shape_of(self, inputs):
        self._check_arity(inputs)
        w, x, b = inputs
        if not x.is_vector():
            raise ShapeError(f'{self.name}: input must be a vector, got {x}')
        try:
            out = w * x
        except ShapeError as e:
            raise ShapeError(f'{self.name}: {e}') from None
        if b != out:
            raise ShapeError(f'{self.name}: bias {b} does not match output {out}')
        return out

    def forward(self, ctx, inputs, output):
        w, x, b = inputs
        kernels.affine(ctx, w.shape.rows, w.shape.cols, w.values, x.values, b.values, output.values)

    def backward(self, ctx, output, inputs):
        w, x, b = inputs
        kernels.backprop_affine(ctx, w.shape.rows, w.shape.cols, w.values, _grad(w),
                                x.values, _grad(x), _grad(b), output.gradients)


class SparseAffine(Affine):
    """Affine over a sparse input, parents (W, sparse x, b)."""
    name = 'sparse_affine'
    sparse_inputs = (1,)

    def forward(self, ctx, inputs, output):
        w, x, b = inputs
        kernels.sparse_affine(ctx, w.shape.rows, w.shape.cols, x.nnz, w.values, x.values, b.values, output.values)

    def backward(self, ctx, output, inputs):
        w, x, b = inputs
        kernels.backprop_sparse_affine(ctx, w.shape.rows, w.shape.cols, x.nnz, _grad(w),
                                       x.values, _grad(b), output.gradients)


class Activate(Operation):
    name = 'activate'
    arity = 1

    def __init__(self, activation=Activation.ReLU):
        self.activation = Activation(activation)

    def shape_of(self, inputs):
        self._check_arity(inputs)
        return inputs[0]

    def forward(self, ctx, inputs, output):
        kernels.activate(ctx, output.shape.size(), self.activation, inputs[0].values, output.values)

    def backward(self, ctx, output, inputs):
        inp = inputs[0]
        if inp.gradients is not None:
            kernels.backprop_activate(ctx, output.shape.size(), self.activation,
                                      inp.values, inp.gradients, output.gradients)

    def __repr__(self):
        return f'Activate({self.activation.name})'


class Concat(Operation):
    """Stack two column vectors."""
    name = 'concat'
    arity = 2

    def shape_of(self, inputs):
        self._check_arity(inputs)
        a, b = inputs
        if not (a.is_vector() and b.is_vector()):
            raise ShapeError(f'{self.name}: inputs must be vectors, got {a} and {b}')
        return Shape(a.rows + b.rows, 1)

    def forward(self, ctx, inputs, output):
        a, b = inputs
        kernels.concat(ctx, a.shape.size(), b.shape.size(), a.values, b.values, output.values)

    def backward(self, ctx, output, inputs):
        a, b = inputs
        kernels.backprop_concat(ctx, a.shape.size(), b.shape.size(), _grad(a), _grad(b), output.gradients)


class SubmatrixProduct(Operation):
    """Block submatrix product of two equal column vectors.

    Each input of `rows` elements is read as an m x (rows / m) matrix; the
    output is transpose(A) x B, an (rows / m) x (rows / m) matrix, flattened
    to a column vector.
    """
    name = 'submatrix_product'
    arity = 2

    def __init__(self, m):
        if m < 1:
            raise ShapeError(f'{self.name}: split factor must be positive, got {m}')
        self.m = int(m)

    def shape_of(self, inputs):
        self._check_arity(inputs)
        a, b = inputs
        if a != b:
            raise ShapeError(f'{self.name}: inputs must have the same shape, {a} != {b}')
        if not a.is_vector():
            raise ShapeError(f'{self.name}: input must be a vector, got {a}')
        if a.rows % self.m != 0:
            raise ShapeError(f'{self.name}: input vector ({a}) must have dimension divisible by {self.m}')
        block = Shape(self.m, a.rows // self.m)
        out = block.transpose() * block
        return Shape(out.size(), 1)

    def forward(self, ctx, inputs, output):
        a, b = inputs
        kernels.submatrix_product(ctx, self.m, a.shape.rows, a.values, b.values, output.values)

    def backward(self, ctx, output, inputs):
        a, b = inputs
        kernels.backprop_submatrix_product(ctx, self.m, a.shape.rows, a.values, _grad(a),
                                           b.values, _grad(b), output.gradients)

    def __repr__(self):
        return f'SubmatrixProduct(m={self.m})'
