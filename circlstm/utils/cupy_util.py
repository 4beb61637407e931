def to_cpu(x):
    import numpy
    if isinstance(x, numpy.ndarray):
        return x
    import cupy
    return cupy.asnumpy(x)


def to_gpu(x):
    import cupy
    if isinstance(x, cupy.ndarray):
        return x
    return cupy.asarray(x)
