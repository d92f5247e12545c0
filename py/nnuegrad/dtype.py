"""dtypes -- element types a DeviceBuffer can hold."""

import ctypes

import numpy as np


class dtypes:
    float32 = 'float32'
    int32 = 'int32'
    float = float32
    default_float = float32

    _ctypes = {'float32': ctypes.c_float, 'int32': ctypes.c_int32}
    _numpy = {'float32': np.float32, 'int32': np.int32}

    @staticmethod
    def is_float(d):
        return d == 'float32'

    @staticmethod
    def is_int(d):
        return d == 'int32'

    @staticmethod
    def to_ctype(d):
        try:
            return dtypes._ctypes[d]
        except KeyError:
            raise ValueError(f'unsupported dtype: {d!r}') from None

    @staticmethod
    def to_numpy(d):
        try:
            return dtypes._numpy[d]
        except KeyError:
            raise ValueError(f'unsupported dtype: {d!r}') from None

    @staticmethod
    def itemsize(d):
        return ctypes.sizeof(dtypes.to_ctype(d))
