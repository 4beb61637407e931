import os
import pickle
from circlstm.config import GPU, np
from circlstm.utils import cupy_util as cuu


class Model:
    """
    Layer들의 params, grads를 하나의 list로 모아 optimizer에 넘기는 model의 기본형
    """
    def __init__(self):
        self.params, self.grads = None, None

    def forward(self, *args):
        raise NotImplementedError

    def backward(self, *args):
        raise NotImplementedError

    def zero_grads(self):
        """
        각 layer의 backward()는 self.grads에 누적(+=)하므로 gradient step마다 비워 주어야 한다.
        """
        for grad in self.grads:
            grad[...] = 0

    def save_params(self, file_name):
        """
        Param만 CPU array의 list로 pickle한다. (buffer, optimizer state는 저장하지 않는다)
        """
        params = [cuu.to_cpu(param) if GPU else param.copy() for param in self.params]
        with open(file_name, 'wb') as f:
            pickle.dump(params, f)

    def load_params(self, file_name):
        """
        Layer들이 param array를 직접 참조하고 있으므로 새 array로 바꾸지 않고 값만 덮어 쓴다.
        """
        if not os.path.exists(file_name):
            raise IOError('No file: ' + file_name)

        with open(file_name, 'rb') as f:
            loaded = pickle.load(f)

        if len(loaded) != len(self.params):
            raise ValueError(f'{file_name} holds {len(loaded)} params, model expects {len(self.params)}.')
        for i, (param, value) in enumerate(zip(self.params, loaded)):
            if param.shape != value.shape:
                raise ValueError(f'param {i} shape mismatch: {tuple(value.shape)} vs {tuple(param.shape)}.')

        for param, value in zip(self.params, loaded):
            param[...] = cuu.to_gpu(value) if GPU else np.asarray(value)


class Optimizer:
    def __init__(self, lr: float):
        self.lr = lr

    def step(self, params, grads):
        raise NotImplementedError
