from circlstm.config import np
from circlstm.common.functions import softmax


class TimeSoftmaxWithLoss:
    """
    batch 속 sequence의 모든 timestep을 [N*T,V]로 펼쳐 한 번에 softmax와 cross entropy를 계산한다.
    ignore_label에 해당하는 target은 loss와 gradient 모두에서 제외된다.
    """
    def __init__(self, ignore_label=-1):
        self.params, self.grads = [], []
        self.cache = None
        self.ignore_label = ignore_label

    def forward(self, ls, ts):
        """
        Args:
            ls: [N,T,V]
            ts: [N,T,V] -> [N,T]
                One-hot form이라면 class idx form으로 변환해 사용한다.
        ---
        Returns:
            loss: N*T개 (ignore_label 제외) 위치의 평균 cross entropy | scalar
        """
        N, T, V = ls.shape

        if ts.ndim == 3:
            ts = ts.argmax(axis=2)          # [N,T]

        mask = (ts != self.ignore_label)    # [N,T]

        ls = ls.reshape(N*T, V)             # [N*T,V]
        ts = ts.reshape(N*T)                # [N*T,]
        mask = mask.reshape(N*T)            # [N*T,]
        count = max(int(mask.sum()), 1)

        ys = softmax(ls)                                            # [N*T,V]
        log_p = np.log(ys[np.arange(N*T), ts] + 1e-7)               # 각 행의 정답 idx만 (ignore_label인 -1은 dump)
        log_p *= mask
        loss = -np.sum(log_p) / count

        self.cache = (ts, ys, mask, count, (N, T, V))

        return float(loss)

    def backward(self, dy=1):
        """
        Args:
            dy: dL = 1 (scalar)
        ---
        Returns:
            dls: [N,T,V]
        """
        ts, ys, mask, count, (N, T, V) = self.cache

        dls = ys.copy()
        dls[np.arange(N*T), ts] -= 1    # 각 행의 정답 idx만 -1
        dls *= dy / count
        dls *= mask[:, np.newaxis]      # ignore_label 위치의 gradient는 0으로

        return dls.reshape(N, T, V)
