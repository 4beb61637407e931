"""
.backward()로 계산한 gradient를 optimizer에 넘기기 전 필요한 처리들과 gradient 검증용 도구.
"""

from circlstm.config import np


def clip_grads(grads, clip):
    """
    Gradient의 explosion을 막기 위해 각 원소를 [-clip, clip]으로 자른다. (in-place)
    clip <= 0이면 아무것도 하지 않는다.
    """
    if clip is None or clip <= 0:
        return
    for grad in grads:
        np.clip(grad, -clip, clip, out=grad)


def clip_grads_norm(grads, max_norm):
    """
    전체 grads의 L2 norm이 max_norm을 넘으면 그 비율만큼 scaling한다. (in-place)
    """
    total_norm = 0
    for grad in grads:
        total_norm += np.sum(grad ** 2)
    total_norm = np.sqrt(total_norm)

    rate = max_norm / (total_norm + 1e-6)
    if rate < 1:
        for grad in grads:
            grad *= rate


def numerical_gradient(f, x, eps=1e-5):
    """
    중앙 차분 (f(x+eps) - f(x-eps)) / 2eps로 x의 모든 원소에 대한 gradient를 구한다.
    x는 in-place로 흔들었다가 원래 값으로 되돌린다.
    ---
    Args:
        f: 인자 없이 scalar loss를 반환하는 함수 (x를 참조하고 있어야 한다)
        x: param 혹은 input array
    """
    grad = np.zeros_like(x, dtype=np.float64)

    it = np.nditer(x, flags=['multi_index'], op_flags=['readwrite'])
    while not it.finished:
        idx = it.multi_index
        orig = x[idx].item()

        x[idx] = orig + eps
        fxh1 = f()
        x[idx] = orig - eps
        fxh2 = f()
        grad[idx] = (fxh1 - fxh2) / (2 * eps)

        x[idx] = orig
        it.iternext()

    return grad
