"""
Tests for the Adam optimizer.
"""

import numpy as np
import pytest

from circlstm.common.optimizer import Adam


class TestAdam:

    def test_first_step_moves_by_lr(self):
        w = np.array([1.0, -2.0, 3.0])
        g = np.array([0.5, -4.0, 1e-3])
        Adam(lr=0.1).step([w], [g])
        np.testing.assert_allclose(w, [0.9, -1.9, 2.9], rtol=1e-4)

    def test_minimizes_quadratic(self):
        w = np.array([5.0, -3.0])
        optimizer = Adam(lr=0.1)
        for _ in range(1000):
            optimizer.step([w], [2 * w])
        np.testing.assert_allclose(w, 0, atol=5e-2)

    def test_lr_is_mutable(self):
        w, g = np.array([1.0]), np.array([1.0])
        optimizer = Adam(lr=0.1)
        optimizer.lr *= 0.5
        optimizer.step([w], [g])
        assert w[0] == pytest.approx(0.95, rel=1e-4)

    def test_updates_in_place(self):
        w = np.ones((2, 2), dtype='f')
        ref = w
        Adam().step([w], [np.ones_like(w)])
        assert ref is w and w.dtype == np.float32
        assert np.all(w < 1)

    def test_param_count_checked(self):
        optimizer = Adam()
        optimizer.step([np.ones(2)], [np.ones(2)])
        with pytest.raises(ValueError):
            optimizer.step([np.ones(2), np.ones(2)], [np.ones(2), np.ones(2)])
