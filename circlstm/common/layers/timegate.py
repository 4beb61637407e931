from circlstm.config import np
from circlstm.common.functions import matmul, sigmoid, tanh
from circlstm.common.layers.circulant import synthesize_circulant


class TimeCirculantGRU:
    """Gated recurrent cell for sequence of length T
    LSTM처럼 h0, c0를 받지만 실제로는 hidden state 하나만 갖는 GRU류의 cell이다.
        c_t = h_t로 두므로 cell state의 recurrence는 따로 없다.
    Update gate의 recurrent weight만 circulant 구조로 합성(synthesize_circulant)해 사용한다.
    ---
    N: batch size
    T: sequence length
    D: input x_t의 dimension
    H: hidden state h_t의 dimension
    ---
    i_t = sigmoid(x_t * wx_i' + h_{t-1} * wh_i' + b_i)      (wx_i', wh_i'는 합성된 weight)
    r_t = sigmoid(x_t * wx_r + h_{t-1} * wh_r + b_r)
    g_t = tanh(x_t * wx_g + (h_{t-1} ⊙ r_t) * wh_g + b_g)
    h_t = (1 - i_t) ⊙ h_{t-1} + i_t ⊙ g_t
    """
    def __init__(self, input_dim, hidden_dim, block_size=32, stateful=False, dtype='f'):
        """
        Args:
            input_dim D
            hidden_dim H
            block_size: update gate weight 합성의 tile 크기
                D와 H를 모두 나누어 떨어지게 해야 한다.
            stateful: 이전 forward()의 마지막 h, c를 다음 forward()의 h0, c0로 인계할 것인가?
                Truncated BPTT로 긴 sequence를 T 단위로 끊어 처리할 때 True로 둔다.
            dtype: param과 buffer의 dtype
        ---
        Instance Variables:
            w: [wx; wh]                 | [D+H,3H]
                wx: [wx_i, wx_r, wx_g]  | [D,3H]
                wh: [wh_i, wh_r, wh_g]  | [H,3H]
            b: [b_i, b_r, b_g]          | [3H,]
        """
        D, H = input_dim, hidden_dim
        if D % block_size or H % block_size:
            raise ValueError(f'block_size {block_size} must divide input_dim {D} and hidden_dim {H}.')

        self.input_dim, self.hidden_dim = D, H
        self.block_size = block_size
        self.stateful = stateful

        w = np.empty((D + H, 3 * H), dtype=dtype)
        b = np.empty(3 * H, dtype=dtype)
        self.params = [w, b]
        self.grads = [np.zeros_like(param) for param in self.params]
        self.reset()

        self.h, self.c = None, None     # 마지막 tstep의 hidden state, cell state | [N,H]
        self.buffers = {}
        self.cache = None
        self._clear_buffers()

    def reset(self, std=None):
        """
        w ~ N(0, std^2), b = 0 (reset gate의 bias만 1)
        """
        D, H = self.input_dim, self.hidden_dim
        if std is None:
            std = 1.0 / np.sqrt(D + H)

        w, b = self.params
        w[...] = np.random.normal(0, std, size=w.shape)
        b[...] = 0
        b[H:2 * H] = 1

        for grad in self.grads:
            grad[...] = 0

        return self

    def _buffer(self, name, shape):
        """
        같은 shape이면 기존 buffer를 그대로 재사용하고, shape이 바뀔 때만 새로 만든다.
        """
        buf = self.buffers.get(name)
        if buf is None or buf.shape != shape:
            buf = np.zeros(shape, dtype=self.params[0].dtype)
            self.buffers[name] = buf
        return buf

    def _clear_buffers(self):
        self.buffers = {}
        self.cache = None

    def _get_sizes(self, xs, h0=None, c0=None):
        D, H = self.input_dim, self.hidden_dim
        if xs.ndim != 3 or xs.shape[2] != D:
            raise ValueError(f'xs must be [N,T,{D}], got {tuple(xs.shape)}.')
        N, T, _ = xs.shape
        if N == 0 or T == 0:
            raise ValueError(f'xs must have at least one sequence and one timestep, got {tuple(xs.shape)}.')
        for name, s in (('h0', h0), ('c0', c0)):
            if s is not None and s.shape != (N, H):
                raise ValueError(f'{name} must be [{N},{H}], got {tuple(s.shape)}.')
        return N, T, D, H

    def _initial_state(self, state, prev, N, name):
        """
        state가 주어지면 그대로 쓰고, 아니면 stateful일 때만 이전 forward()의 마지막 state를 인계한다.
        """
        buf = self._buffer(name, (N, self.hidden_dim))
        if state is not None:
            buf[...] = state
        elif not self.stateful or prev is None:
            buf[...] = 0
        else:
            if prev.shape[0] != N:
                raise ValueError('batch sizes must be constant to remember states '
                                 f'(previous {prev.shape[0]}, current {N}).')
            buf[...] = prev
        return buf

    def forward(self, xs, h0=None, c0=None):
        """
        Args:
            xs: [N,T,D]
            h0: (optional) 초기 hidden state | [N,H]
            c0: (optional) 초기 cell state   | [N,H]
                c_t = h_t이므로 계산에는 쓰이지 않지만 LSTM과 같은 interface를 유지한다.
        ---
        Returns:
            hs: [N,T,H]
                bpass를 위해 self.buffers['hs']에 보관되므로 다음 forward() 전까지 수정하지 않아야 한다.
        """
        N, T, D, H = self._get_sizes(xs, h0, c0)
        w, b = self.params
        wx, wh = w[:D], w[D:]

        return_dh0, return_dc0 = h0 is not None, c0 is not None
        h0 = self._initial_state(h0, self.h, N, 'h0')
        c0 = self._initial_state(c0, self.c, N, 'c0')

        # update gate의 weight는 forward() 호출 내내 바뀌지 않으므로 한 번만 합성
        iweight = self._buffer('iweight', (D + H, H))
        synthesize_circulant(wh[:, :H], wx[:, :H], self.block_size, out=iweight)
        ix, ih = iweight[:D], iweight[D:]

        b_i, b_r, b_g = b[:H], b[H:2 * H], b[2 * H:]
        wx_r, wx_g = wx[:, H:2 * H], wx[:, 2 * H:]
        wh_r, wh_g = wh[:, H:2 * H], wh[:, 2 * H:]

        hs = self._buffer('hs', (N, T, H))
        gates = self._buffer('gates', (N, T, 3 * H))
        tmp1 = self._buffer('buffer1', (N, H))
        tmp2 = self._buffer('buffer2', (N, H))

        h_prev = h0
        for t in range(T):
            x_t = xs[:, t, :]           # [N,D]
            h_next = hs[:, t, :]        # [N,H]
            i = gates[:, t, :H]         # [N,H]
            r = gates[:, t, H:2 * H]    # [N,H]
            g = gates[:, t, 2 * H:]     # [N,H]

            # update gate
            matmul(x_t, ix, out=i)
            i += matmul(h_prev, ih, out=tmp1)
            i += b_i
            sigmoid(i, out=i)

            # reset gate
            matmul(x_t, wx_r, out=r)
            r += matmul(h_prev, wh_r, out=tmp1)
            r += b_r
            sigmoid(r, out=r)

            # candidate
            matmul(x_t, wx_g, out=g)
            np.multiply(h_prev, r, out=tmp1)
            g += matmul(tmp1, wh_g, out=tmp2)
            g += b_g
            tanh(g, out=g)

            # h_t = (1 - i) ⊙ h_{t-1} + i ⊙ g
            np.subtract(1, i, out=tmp1)
            tmp1 *= h_prev
            np.multiply(i, g, out=h_next)
            h_next += tmp1

            h_prev = h_next     # c_next = h_next

        self.h = hs[:, -1, :].copy()
        self.c = self.h.copy()

        self.cache = (xs, (N, T, D, H), return_dh0, return_dc0)

        return hs

    def backward(self, dhs, xs=None, scale=1.0):
        """
        Args:
            dhs: cell 외부로 출력된 hs의 dns grad  | [N,T,H]
            xs: (optional) forward()에 넣은 xs     | [N,T,D]
                주어지면 보관해 둔 fpass 결과와 shape이 맞는지 확인만 한다.
            scale: 1.0만 지원
        ---
        Returns:
            dxs                     | [N,T,D]
            (dh0, dxs)              h0만 forward()에 직접 넣었다면
            (dc0, dxs)              c0만 forward()에 직접 넣었다면
            (dh0, dc0, dxs)         둘 다 넣었다면
            cf. dw, db는 self.grads에 누적(+=)되므로 step마다 호출 측에서 비워 주어야 한다.
        """
        if scale != 1.0:
            raise ValueError(f'must have scale=1, got {scale}.')
        if self.cache is None:
            raise RuntimeError('backward() requires a preceding forward() on the same instance.')

        _xs, (N, T, D, H), return_dh0, return_dc0 = self.cache
        if xs is not None and xs.shape != _xs.shape:
            raise ValueError(f'xs must match the last forward() input {tuple(_xs.shape)}, got {tuple(xs.shape)}.')
        if dhs.shape != (N, T, H):
            raise ValueError(f'dhs must be [{N},{T},{H}], got {tuple(dhs.shape)}.')
        xs = _xs

        w, _ = self.params
        dw, db = self.grads
        wx, wh = w[:D], w[D:]
        wh_g = wh[:, 2 * H:]

        hs, gates, h0 = self.buffers['hs'], self.buffers['gates'], self.buffers['h0']
        dxs = self._buffer('dxs', (N, T, D))
        dh = self._buffer('buffer1', (N, H))        # dh_next
        tmp1 = self._buffer('buffer2', (N, H))
        tmp2 = self._buffer('buffer3', (N, H))
        dA = self._buffer('grad_a', (N, 3 * H))
        db_t = self._buffer('grad_b', (3 * H,))
        dw_t = self._buffer('grad_w', (D + H, 3 * H))

        di, dr, dg = dA[:, :H], dA[:, H:2 * H], dA[:, 2 * H:]

        dh[...] = 0     # truncated BPTT이므로 첫 dh_next는 0
        for t in reversed(range(T)):
            h_prev = h0 if t == 0 else hs[:, t - 1, :]
            i = gates[:, t, :H]
            r = gates[:, t, H:2 * H]
            g = gates[:, t, 2 * H:]

            # h_t는 출력과 다음 tstep으로 copy되므로 둘의 grad를 합산
            dh += dhs[:, t, :]

            # candidate: tanh
            np.multiply(g, g, out=dg)
            np.subtract(1, dg, out=dg)
            dg *= i
            dg *= dh

            # update gate: sigmoid
            np.subtract(g, h_prev, out=tmp2)
            tmp2 *= dh
            np.subtract(1, i, out=di)
            di *= i
            di *= tmp2

            # reset gate: sigmoid (h_{t-1} ⊙ r의 grad는 tmp1에 남겨 dh_prev 계산에 다시 쓴다)
            matmul(dg, wh_g.T, out=tmp1)
            np.subtract(1, r, out=dr)
            dr *= r
            dr *= h_prev
            dr *= tmp1

            # x_t
            matmul(dA, wx.T, out=dxs[:, t, :])

            # downstream gradient towards optimizer
            matmul(xs[:, t, :].T, dA, out=dw_t[:D])
            matmul(h_prev.T, dA[:, :2 * H], out=dw_t[D:, :2 * H])
            np.multiply(h_prev, r, out=tmp2)
            matmul(tmp2.T, dg, out=dw_t[D:, 2 * H:])
            dw += dw_t
            dA.sum(axis=0, out=db_t)
            db += db_t

            # dh_prev = (1 - i) ⊙ dh + di * wh_i.T + dr * wh_r.T + r ⊙ (dg * wh_g.T)
            #   wh_i는 합성 전의 원래 weight
            np.subtract(1, i, out=tmp2)
            dh *= tmp2
            tmp1 *= r
            dh += tmp1
            dh += matmul(dA[:, :2 * H], wh[:, :2 * H].T, out=tmp2)

        dh0 = self._buffer('dh0', (N, H))
        dc0 = self._buffer('dc0', (N, H))
        dh0[...] = dh
        dc0[...] = dh   # c_t = h_t이므로 dc도 dh와 같다

        if return_dh0 and return_dc0:
            return dh0, dc0, dxs
        if return_dh0:
            return dh0, dxs
        if return_dc0:
            return dc0, dxs
        return dxs

    def set_state(self, h, c=None):
        self.h = h
        self.c = h if c is None else c

    def reset_state(self):
        self.h, self.c = None, None

    def clear_state(self):
        """
        param과 grads만 남기고 buffer를 전부 비운다. (checkpoint 저장 전 용량 줄이기)
        """
        self._clear_buffers()

    def __repr__(self):
        return f'{self.__class__.__name__}({self.input_dim} -> {self.hidden_dim}, block_size={self.block_size})'
