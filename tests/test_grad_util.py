"""
Tests for gradient clipping and the finite-difference helper.
"""

import numpy as np

from circlstm.utils.grad_util import clip_grads, clip_grads_norm, numerical_gradient


def test_clip_grads_elementwise():
    grads = [np.array([-10.0, 0.5, 7.0]), np.array([[3.0, -3.0]])]
    clip_grads(grads, 5)
    np.testing.assert_array_equal(grads[0], [-5.0, 0.5, 5.0])
    np.testing.assert_array_equal(grads[1], [[3.0, -3.0]])


def test_clip_grads_disabled():
    grads = [np.array([-10.0, 10.0])]
    clip_grads(grads, 0)
    np.testing.assert_array_equal(grads[0], [-10.0, 10.0])


def test_clip_grads_norm():
    grads = [np.array([3.0]), np.array([4.0])]
    clip_grads_norm(grads, 1.0)
    total = np.sqrt(sum(np.sum(g ** 2) for g in grads))
    assert abs(total - 1.0) < 1e-5
    np.testing.assert_allclose(grads[0] / grads[1], 0.75)


def test_clip_grads_norm_below_threshold():
    grads = [np.array([0.3, 0.4])]
    clip_grads_norm(grads, 1.0)
    np.testing.assert_array_equal(grads[0], [0.3, 0.4])


def test_numerical_gradient_restores_input():
    x = np.array([[1.0, -2.0], [0.5, 3.0]])
    orig = x.copy()
    grad = numerical_gradient(lambda: float(np.sum(x ** 2)), x)
    np.testing.assert_allclose(grad, 2 * orig, rtol=1e-6)
    np.testing.assert_array_equal(x, orig)
