from circlstm.config import np


def sigmoid(x, out=None):
    """
    out이 주어지면 새 array를 만들지 않고 out에 in-place로 계산한다.
        cf. out=x면 x 자체가 덮어 써진다.
    """
    out = np.negative(x, out=out)
    np.exp(out, out=out)
    out += 1
    return np.reciprocal(out, out=out)


def tanh(x, out=None):
    return np.tanh(x, out=out)


def matmul(x, w, out=None):
    return np.matmul(x, w, out=out)


def softmax(x):
    # single data는 batch form으로 일반화
    if x.ndim == 1:
        x = x.reshape(-1, x.size)

    # overflow 방지 (계산 결과는 동일)
    x = x - x.max(axis=1, keepdims=True)

    x = np.exp(x)
    y = x / x.sum(axis=1, keepdims=True)  # keepdims for broadcasting [N,C]/[N,1]=[N,C]

    return y
