"""Device buffers and execution contexts.

DeviceBuffer is the only place in nnuegrad that touches raw memory. Everything
above it (kernels, tensors, the graph, optimisers) goes through its checked
methods, which compare a requested logical size against the allocation's
capacity before any view or write is produced.
"""

import ctypes
import logging

import numpy as np

from .dtype import dtypes

logger = logging.getLogger(__name__)


class DeviceError(RuntimeError):
    """Runtime failure while executing a kernel."""


class CapacityError(DeviceError):
    """A kernel asked for more elements than a buffer holds."""

    def __init__(self, size, capacity, offset=0):
        self.size = size
        self.capacity = capacity
        self.offset = offset
        if offset:
            msg = f'illegal address access: {size} elements at offset {offset} exceeds buffer capacity {capacity}'
        else:
            msg = f'illegal address access: {size} elements exceeds buffer capacity {capacity}'
        super().__init__(msg)


class Device:
    DEFAULT = 'CPU'
    SUPPORTED = ('CPU',)

    @staticmethod
    def canonicalize(name):
        name = (name or Device.DEFAULT).upper()
        if name not in Device.SUPPORTED:
            raise DeviceError(f'unsupported device: {name!r} (available: {", ".join(Device.SUPPORTED)})')
        return name


class ExecutionContext:
    """Handle to a compute stream.

    Kernels are issued through a context and return only once their result is
    readable, so synchronize() is a barrier with nothing to wait for on CPU.
    The context holds no graph state and may be shared between graphs.
    """

    def __init__(self, device=None):
        self.device = Device.canonicalize(device)
        self.launches = 0

    def record(self, kernel):
        self.launches += 1
        logger.debug('launch %s on %s (#%d)', kernel, self.device, self.launches)

    def synchronize(self):
        pass

    def __repr__(self):
        return f'ExecutionContext({self.device!r}, launches={self.launches})'


class DeviceBuffer:
    """Fixed-capacity, zero-initialised block of elements on a device."""

    def __init__(self, size, dtype=dtypes.float32):
        size = int(size)
        if size < 0:
            raise ValueError(f'buffer size must be non-negative, got {size}')
        self._size = size
        self.dtype = dtype
        self._ctype = dtypes.to_ctype(dtype)
        self._mem = (self._ctype * max(size, 1))()
        # host-visible alias of the allocation; its base keeps _mem alive
        self._host = np.ctypeslib.as_array(self._mem)

    def size(self):
        return self._size

    def nbytes(self):
        return self._size * ctypes.sizeof(self._ctype)

    def ensure_capacity(self, size, offset=0):
        if size < 0 or offset < 0 or offset + size > self._size:
            raise CapacityError(size, self._size, offset)

    def _unchecked(self, size, offset=0):
        # Slicing silently truncates past the end, so every caller must have
        # gone through ensure_capacity first.
        return self._host[offset:offset + size]

    def view(self, size, offset=0):
        """Writable view of `size` elements starting at `offset`."""
        self.ensure_capacity(size, offset)
        return self._unchecked(size, offset)

    def set_zero(self):
        ctypes.memset(self._mem, 0, ctypes.sizeof(self._mem))

    def load_from_slice(self, data):
        """Copy host data into the front of the buffer."""
        arr = np.ascontiguousarray(data, dtype=dtypes.to_numpy(self.dtype)).reshape(-1)
        self.ensure_capacity(arr.size)
        if arr.size:
            ctypes.memmove(self._mem, arr.ctypes.data, arr.nbytes)
        return arr.size

    def write_into_slice(self, out, size):
        """Copy the first `size` elements into a host array."""
        self.ensure_capacity(size)
        if len(out) < size:
            raise ValueError(f'host slice of length {len(out)} cannot hold {size} elements')
        out[:size] = self._unchecked(size)

    def to_numpy(self, size=None):
        size = self._size if size is None else size
        self.ensure_capacity(size)
        return self._unchecked(size).copy()

    def __repr__(self):
        return f'DeviceBuffer(size={self._size}, dtype={self.dtype})'


def ensure_capacity(size, *buffers, offset=0):
    """Check one logical size against every buffer before anything is written."""
    for buf in buffers:
        if buf is not None:
            buf.ensure_capacity(size, offset)
