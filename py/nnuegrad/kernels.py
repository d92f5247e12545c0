"""Buffer-level kernels.

Every kernel takes the context it is issued on, the logical sizes it will
operate on and the buffers involved. Sizes are checked against every buffer
before any view is taken, so a CapacityError leaves all buffers untouched.
Kernels read everything they need before writing, which keeps them correct
when two arguments share storage.

Matrices are stored column-major: a rows x cols matrix W keeps element
(r, c) at index c * rows + r. Reshaping such a buffer to (cols, rows) gives a
row-per-column view, which is the form most kernels below work with.
"""

import enum

import numpy as np

from .device import CapacityError, DeviceError, ensure_capacity

EPSILON = 1e-8


class Activation(enum.Enum):
    Identity = 'identity'
    ReLU = 'relu'
    CReLU = 'crelu'
    SCReLU = 'screlu'
    SqrReLU = 'sqrrelu'
    Sigmoid = 'sigmoid'


def _columns(buf, rows, cols):
    return buf.view(rows * cols).reshape(cols, rows)


# ── Elementwise ────────────────────────────────────────────────────

def set_zero(ctx, size, buf):
    ensure_capacity(size, buf)
    ctx.record('set_zero')
    buf.view(size)[:] = 0


def copy(ctx, size, src, dst, src_offset=0, dst_offset=0):
    src.ensure_capacity(size, src_offset)
    dst.ensure_capacity(size, dst_offset)
    ctx.record('copy')
    vals = src.view(size, src_offset).copy()
    dst.view(size, dst_offset)[:] = vals


def add_assign(ctx, size, src, dst, src_offset=0, dst_offset=0):
    """dst[dst_offset:] += src[src_offset:] over `size` elements."""
    src.ensure_capacity(size, src_offset)
    dst.ensure_capacity(size, dst_offset)
    ctx.record('add_assign')
    vals = src.view(size, src_offset).copy()
    dst.view(size, dst_offset)[:] += vals


def scale(ctx, size, buf, alpha):
    ensure_capacity(size, buf)
    ctx.record('scale')
    buf.view(size)[:] *= np.float32(alpha)


# ── Affine ─────────────────────────────────────────────────────────

def affine(ctx, rows, cols, weights, inp, bias, out):
    """out = W @ inp + bias for a rows x cols weight matrix."""
    ensure_capacity(rows * cols, weights)
    ensure_capacity(cols, inp)
    ensure_capacity(rows, bias, out)
    ctx.record('affine')
    result = inp.view(cols) @ _columns(weights, rows, cols) + bias.view(rows)
    out.view(rows)[:] = result


def backprop_affine(ctx, rows, cols, weights, weights_grad, inp, inp_grad, bias_grad, out_grad):
    ensure_capacity(rows * cols, weights, weights_grad)
    ensure_capacity(cols, inp, inp_grad)
    ensure_capacity(rows, bias_grad, out_grad)
    ctx.record('backprop_affine')
    g = out_grad.view(rows).copy()
    x = inp.view(cols).copy()
    d_inp = _columns(weights, rows, cols) @ g if inp_grad is not None else None
    if weights_grad is not None:
        _columns(weights_grad, rows, cols)[:] += np.outer(x, g)
    if inp_grad is not None:
        inp_grad.view(cols)[:] += d_inp
    if bias_grad is not None:
        bias_grad.view(rows)[:] += g


def _active_columns(indices, nnz, rows, cols):
    idx = indices.view(nnz).copy()
    bad = idx[(idx < 0) | (idx >= cols)]
    if bad.size:
        # an index past the last column would address outside the weights
        raise CapacityError(rows, rows * cols, offset=int(bad[0]) * rows)
    return idx


def sparse_affine(ctx, rows, cols, nnz, weights, indices, bias, out):
    """Feature-transformer forward: bias plus the columns of W named by `indices`."""
    ensure_capacity(rows * cols, weights)
    ensure_capacity(nnz, indices)
    ensure_capacity(rows, bias, out)
    idx = _active_columns(indices, nnz, rows, cols)
    ctx.record('sparse_affine')
    result = bias.view(rows) + _columns(weights, rows, cols)[idx].sum(axis=0)
    out.view(rows)[:] = result


def backprop_sparse_affine(ctx, rows, cols, nnz, weights_grad, indices, bias_grad, out_grad):
    ensure_capacity(rows * cols, weights_grad)
    ensure_capacity(nnz, indices)
    ensure_capacity(rows, bias_grad, out_grad)
    idx = _active_columns(indices, nnz, rows, cols)
    ctx.record('backprop_sparse_affine')
    g = out_grad.view(rows).copy()
    if weights_grad is not None:
        # repeated indices must each contribute
        np.add.at(_columns(weights_grad, rows, cols), idx, g)
    if bias_grad is not None:
        bias_grad.view(rows)[:] += g


# ── Activations ────────────────────────────────────────────────────

def _activate(activation, x):
    if activation is Activation.Identity:
        return x.copy()
    if activation is Activation.ReLU:
        return np.maximum(x, 0)
    if activation is Activation.CReLU:
        return np.clip(x, 0, 1)
    if activation is Activation.SCReLU:
        return np.square(np.clip(x, 0, 1))
    if activation is Activation.SqrReLU:
        return np.square(np.maximum(x, 0))
    if activation is Activation.Sigmoid:
        return 1 / (1 + np.exp(-x))
    raise ValueError(f'unknown activation: {activation!r}')


def _activate_prime(activation, x):
    if activation is Activation.Identity:
        return np.ones_like(x)
    if activation is Activation.ReLU:
        return (x > 0).astype(x.dtype)
    if activation is Activation.CReLU:
        return ((x > 0) & (x < 1)).astype(x.dtype)
    if activation is Activation.SCReLU:
        return 2 * np.clip(x, 0, 1) * ((x > 0) & (x < 1))
    if activation is Activation.SqrReLU:
        return 2 * np.maximum(x, 0)
    if activation is Activation.Sigmoid:
        s = 1 / (1 + np.exp(-x))
        return s * (1 - s)
    raise ValueError(f'unknown activation: {activation!r}')


def activate(ctx, size, activation, inp, out):
    ensure_capacity(size, inp, out)
    ctx.record(f'activate[{activation.value}]')
    out.view(size)[:] = _activate(activation, inp.view(size))


def backprop_activate(ctx, size, activation, inp, inp_grad, out_grad):
    ensure_capacity(size, inp, inp_grad, out_grad)
    ctx.record(f'backprop_activate[{activation.value}]')
    d = _activate_prime(activation, inp.view(size)) * out_grad.view(size)
    inp_grad.view(size)[:] += d


# ── Concat ─────────────────────────────────────────────────────────

def concat(ctx, size_a, size_b, a, b, out):
    ensure_capacity(size_a, a)
    ensure_capacity(size_b, b)
    ensure_capacity(size_a + size_b, out)
    ctx.record('concat')
    vals = np.concatenate([a.view(size_a), b.view(size_b)])
    out.view(size_a + size_b)[:] = vals


def backprop_concat(ctx, size_a, size_b, a_grad, b_grad, out_grad):
    ensure_capacity(size_a, a_grad)
    ensure_capacity(size_b, b_grad)
    ensure_capacity(size_a + size_b, out_grad)
    ctx.record('backprop_concat')
    g = out_grad.view(size_a + size_b).copy()
    if a_grad is not None:
        a_grad.view(size_a)[:] += g[:size_a]
    if b_grad is not None:
        b_grad.view(size_b)[:] += g[size_a:]


# ── Block submatrix product ────────────────────────────────────────

def _blocks(m, size):
    if m < 1 or size % m != 0:
        raise DeviceError(f'submatrix product: size {size} does not split into blocks of {m}')
    return size // m


def submatrix_product(ctx, m, size, a, b, out):
    """out = A^T B, where A and B are `a` and `b` read as m x (size / m) matrices.

    The n x n product (n = size / m) is written column-major into `out`.
    """
    n = _blocks(m, size)
    ensure_capacity(size, a, b)
    ensure_capacity(n * n, out)
    ctx.record('submatrix_product')
    a_cols = a.view(size).reshape(n, m)
    b_cols = b.view(size).reshape(n, m)
    prod = a_cols @ b_cols.T
    out.view(n * n).reshape(n, n)[:] = prod.T


def backprop_submatrix_product(ctx, m, size, a, a_grad, b, b_grad, out_grad):
    """dA += B G^T and dB += A G for the upstream n x n gradient G.

    Both contributions are computed before either gradient is written, so
    `a_grad` and `b_grad` may be the same buffer.
    """
    n = _blocks(m, size)
    ensure_capacity(size, a, b, a_grad, b_grad)
    ensure_capacity(n * n, out_grad)
    ctx.record('backprop_submatrix_product')
    g = out_grad.view(n * n).reshape(n, n).T
    a_cols = a.view(size).reshape(n, m)
    b_cols = b.view(size).reshape(n, m)
    d_a = g @ b_cols if a_grad is not None else None
    d_b = g.T @ a_cols if b_grad is not None else None
    if a_grad is not None:
        a_grad.view(size).reshape(n, m)[:] += d_a
    if b_grad is not None:
        b_grad.view(size).reshape(n, m)[:] += d_b


# ── Parameter updates ──────────────────────────────────────────────

def adam(ctx, size, params, gradient, momentum, velocity,
         beta1, beta2, gradient_factor, learning_rate, denom):
    ensure_capacity(size, params, gradient, momentum, velocity)
    ctx.record('adam')
    g = gradient.view(size) * np.float32(gradient_factor)
    m = momentum.view(size)
    v = velocity.view(size)
    m[:] = np.float32(beta1) * m + np.float32(1 - beta1) * g
    v[:] = np.float32(beta2) * v + np.float32(1 - beta2) * g * g
    if denom:
        step = m / (np.sqrt(v) + np.float32(EPSILON))
    else:
        step = m
    params.view(size)[:] -= np.float32(learning_rate) * step


def clip(ctx, size, params, min_, max_):
    ensure_capacity(size, params)
    ctx.record('clip')
    p = params.view(size)
    np.clip(p, min_, max_, out=p)
