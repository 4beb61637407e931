from circlstm.config import GPU, np
from circlstm.common.functions import matmul


class TimeEmbedding:
    """
    Token ID sequence를 embedding vector sequence로 바꾼다.
        raw_xs[N,T] -> w[raw_xs] = xs[N,T,D]
    """
    def __init__(self, w):
        """
        Args:
            w: embedding table | [V,D]
        """
        self.params = [w]
        self.grads = [np.zeros_like(w)]
        self.raw_xs = None

    def forward(self, raw_xs):
        w, = self.params
        V = w.shape[0]
        raw_xs = np.asarray(raw_xs)
        if raw_xs.ndim != 2:
            raise ValueError(f'token ids must be [N,T], got {tuple(raw_xs.shape)}.')
        if raw_xs.size and (raw_xs.min() < 0 or raw_xs.max() >= V):
            raise ValueError(f'token ids must lie in [0, {V}).')

        self.raw_xs = raw_xs
        return w[raw_xs]

    def backward(self, dxs):
        """
        한 batch 안에 같은 token이 여러 번 나올 수 있으므로 dw의 행에 scatter-add로 누적한다.
        ---
        Returns:
            None: token ID는 미분 대상이 아니다
        """
        dw, = self.grads
        ids = self.raw_xs.ravel()              # [N*T,]
        rdxs = dxs.reshape(ids.size, -1)       # [N*T,D]
        if GPU:
            import cupyx
            cupyx.scatter_add(dw, ids, rdxs)
        else:
            np.add.at(dw, ids, rdxs)

        return None


class TimeAffine:
    """
    모든 timestep에 같은 w, b를 쓰므로 [N,T,H]를 [N*T,H]로 펼쳐 matmul 한 번으로 처리한다.
    """
    def __init__(self, w, b):
        """
        Args:
            w: [H,V]
            b: [V,]
        """
        self.params = [w, b]
        self.grads = [np.zeros_like(param) for param in self.params]
        self.rhs = None
        self.shape = None

    def forward(self, hs):
        """
        Args:
            hs: [N,T,H]
        ---
        Returns:
            ls: scores | [N,T,V]
        """
        w, b = self.params
        N, T, H = hs.shape
        if H != w.shape[0]:
            raise ValueError(f'hs must be [N,T,{w.shape[0]}], got {tuple(hs.shape)}.')

        self.rhs = hs.reshape(N * T, H)
        self.shape = (N, T, H)

        rls = matmul(self.rhs, w)
        rls += b
        return rls.reshape(N, T, -1)

    def backward(self, dls):
        w, _ = self.params
        dw, db = self.grads
        rhs = self.rhs

        rdls = dls.reshape(rhs.shape[0], -1)   # [N*T,V]
        db += rdls.sum(axis=0)
        dw += matmul(rhs.T, rdls)              # [H,N*T] * [N*T,V]

        return matmul(rdls, w.T).reshape(self.shape)


class TimeDropout:
    """Inverted dropout
    train_flag가 False면 identity
    """
    def __init__(self, dropout_ratio=0.5):
        self.params, self.grads = [], []
        self.dropout_ratio = dropout_ratio
        self.mask = None
        self.train_flag = True

    def forward(self, xs):
        if not self.train_flag:
            return xs

        flg = np.random.rand(*xs.shape) > self.dropout_ratio
        scale = 1 / (1.0 - self.dropout_ratio)
        self.mask = flg.astype(xs.dtype) * scale  # scaling까지 mask에 포함해 두면 bpass에서 그대로 곱하기만 하면 된다
        return xs * self.mask

    def backward(self, dys):
        if not self.train_flag:
            return dys
        return self.mask * dys
