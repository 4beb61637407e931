from typing import List, Optional
from circlstm.config import np
from circlstm.common.base import Model
from circlstm.common.functions import softmax
from circlstm.common.layers.time import TimeEmbedding, TimeAffine, TimeDropout
from circlstm.common.layers.timegate import TimeCirculantGRU
from circlstm.common.layers.criterion import TimeSoftmaxWithLoss


class CircLSTMLM(Model):
    """
    Computation Graph
     raw_xs[N,T] -> Embedding Block -> xs[N,T,D] -> (Cell Block -> Dropout) x L -> hs[N,T,H] -> Affine Block -> ys[N,T,V]
    w_embed[V,D] ->                              w[D+H,3H], b[3H,] ->               wa[H,V], ba[V,] ->

    ys[N,T,V] -> SoftmaxWithLoss Block -> L
    ts[N,T] ->
    ---
    Cell block은 모두 stateful이므로 연속된 batch 사이에서 hidden state가 인계된다.
    Epoch 경계나 validation 전후에는 reset_state()로 끊어 준다.
    """
    def __init__(self, vocab_size, wordvec_size=64, hidden_size=128, num_layers=2,
                 dropout_ratio=0.0, block_size=32, dtype='f'):
        """
        Args:
            vocab_size V
            wordvec_size D: token embedding의 차원
            hidden_size H: cell의 hidden state h의 차원
            num_layers L: 쌓을 cell block의 수
            dropout_ratio: 0이면 dropout layer를 두지 않는다
            block_size: cell의 update gate weight 합성에 쓰이는 tile 크기
        """
        super().__init__()

        V, D, H = vocab_size, wordvec_size, hidden_size
        rn = np.random.randn

        w_embed = (rn(V, D) / 100).astype(dtype)
        wa = (rn(H, V) / np.sqrt(H)).astype(dtype)
        ba = np.zeros(V, dtype=dtype)

        # model architecture
        self.layers = [TimeEmbedding(w_embed)]
        self.cell_layers, self.drop_layers = [], []
        for l in range(num_layers):
            cell = TimeCirculantGRU(D if l == 0 else H, H, block_size=block_size, stateful=True, dtype=dtype)
            self.layers.append(cell)
            self.cell_layers.append(cell)
            if dropout_ratio > 0:
                drop = TimeDropout(dropout_ratio)
                self.layers.append(drop)
                self.drop_layers.append(drop)
        self.layers.append(TimeAffine(wa, ba))
        self.criterion = TimeSoftmaxWithLoss()

        # computation graph
        self.params, self.grads = [], []
        for layer in self.layers:
            self.params += layer.params
            self.grads += layer.grads

        self.vocab_size = V

    def predict(self, xs, train_flag=False):
        """
        Args:
            xs: raw_xs  | [N,T]
        ---
        Returns:
            ys: scores  | [N,T,V]
        """
        for layer in self.drop_layers:
            layer.train_flag = train_flag

        for layer in self.layers:
            xs = layer.forward(xs)
        return xs

    def forward(self, xs, ts, train_flag=True):
        """
        Args:
            xs: raw_xs  | [N,T]
            ts: targets | [N,T]
        ---
        Returns:
            loss: L     | scalar
        """
        ys = self.predict(xs, train_flag)
        return self.criterion.forward(ys, ts)

    def backward(self, dy=1):
        dy = self.criterion.backward(dy)
        for layer in reversed(self.layers):
            dy = layer.backward(dy)
        return dy

    def reset_state(self):
        for layer in self.cell_layers:
            layer.reset_state()

    def clear_state(self):
        for layer in self.cell_layers:
            layer.clear_state()

    def generate(self, start_ids: List[int], length=100, sample=True, temperature=1.0,
                 skip_ids: Optional[List[int]] = None):
        """
        Args:
            start_ids: 처음에 넣을 token IDs (prime)
            length: 반환할 token의 총 개수 (start_ids 포함)
            sample: True면 softmax 분포에서 sampling, False면 argmax
            temperature: 작을수록 분포가 뾰족해진다
            skip_ids: sampling하지 않을 token IDs
        ---
        Returns:
            ids: [length,]
        """
        if not start_ids:
            raise ValueError('start_ids must hold at least one token.')
        if temperature <= 0:
            raise ValueError(f'temperature must be positive, got {temperature}.')

        self.reset_state()     # 학습 중의 batch size N과 generate의 N=1이 다르므로
        ids = list(start_ids)

        # prime: 마지막 token을 뺀 나머지로 hidden state만 만들어 둔다
        if len(ids) > 1:
            self.predict(np.array(ids[:-1]).reshape(1, -1))

        x = ids[-1]
        while len(ids) < length:
            y = self.predict(np.array(x).reshape(1, 1))     # [N=1,T=1,V]
            p = softmax(y.flatten() / temperature).flatten().astype(np.float64)    # [V,]
            if skip_ids is not None:
                p[list(skip_ids)] = 0
            p /= p.sum()    # float32 softmax의 합이 정확히 1이 아니면 np.random.choice가 거부한다

            if sample:
                x = int(np.random.choice(len(p), size=1, p=p).item())
            else:
                x = int(p.argmax())
            ids.append(x)

        self.reset_state()
        return ids[:length]
