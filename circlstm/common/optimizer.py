from circlstm.config import np
from circlstm.common.base import Optimizer


class Adam(Optimizer):
    """Adam with bias correction
    m_t = beta1 * m_{t-1} + (1 - beta1) * g
    v_t = beta2 * v_{t-1} + (1 - beta2) * g^2
    w <- w - lr * m_t / (1 - beta1^t) / (sqrt(v_t / (1 - beta2^t)) + eps)
    ---
    lr은 학습 도중 trainer가 직접 바꿀 수 있다. (lr decay)
    m, v와 update buffer는 param마다 한 번만 만들고 in-place로 갱신한다.
    """
    def __init__(self, lr=2e-3, beta1=0.9, beta2=0.999, eps=1e-8):
        super().__init__(lr=lr)
        self.beta1, self.beta2 = beta1, beta2
        self.eps = eps

        self.t = 0
        self.state = None   # param마다 (m, v, update buffer)

    def step(self, params, grads):
        if self.state is None:
            self.state = [(np.zeros_like(p), np.zeros_like(p), np.empty_like(p)) for p in params]
        if len(self.state) != len(params):
            raise ValueError(f'optimizer was built for {len(self.state)} params, got {len(params)}.')
        self.t += 1

        beta1, beta2 = self.beta1, self.beta2
        bias1 = 1 - beta1 ** self.t
        bias2 = 1 - beta2 ** self.t

        for param, grad, (m, v, update) in zip(params, grads, self.state):
            m *= beta1
            m += (1 - beta1) * grad
            v *= beta2
            v += (1 - beta2) * grad * grad

            np.divide(v, bias2, out=update)
            np.sqrt(update, out=update)
            update += self.eps
            np.divide(m, update, out=update)
            update *= self.lr / bias1

            param -= update
