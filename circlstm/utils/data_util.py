import io
import json
from circlstm.config import np

SPLITS = ('train', 'val', 'test')


def build_vocab(text):
    """
    e.g. 'hello' -> token_to_idx: {'e': 0, 'h': 1, 'l': 2, 'o': 3}
    ---
    Returns:
        token_to_idx: 문자-ID dict
        idx_to_token: ID-문자 dict
    """
    tokens = sorted(set(text))
    token_to_idx = {token: idx for idx, token in enumerate(tokens)}
    idx_to_token = {idx: token for token, idx in token_to_idx.items()}
    return token_to_idx, idx_to_token


def encode(text, token_to_idx):
    try:
        return np.array([token_to_idx[c] for c in text], dtype=np.int32)
    except KeyError as e:
        raise ValueError(f'Token {e.args[0]!r} is not in the vocabulary.') from e


def decode(ids, idx_to_token):
    return ''.join(idx_to_token[int(i)] for i in ids)


def save_vocab(path, token_to_idx, idx_to_token):
    with io.open(path, 'w', encoding='utf-8') as f:
        json.dump({'token_to_idx': token_to_idx,
                   'idx_to_token': {str(k): v for k, v in idx_to_token.items()}},
                  f, ensure_ascii=False)


def load_vocab(path):
    with io.open(path, 'r', encoding='utf-8') as f:
        vocab = json.load(f)
    token_to_idx = {k: int(v) for k, v in vocab['token_to_idx'].items()}
    idx_to_token = {int(k): v for k, v in vocab['idx_to_token'].items()}   # json의 key는 항상 str
    return token_to_idx, idx_to_token


def split_tokens(tokens, val_frac=0.1, test_frac=0.1):
    """
    앞에서부터 train, val, test 순으로 자른다. (시간 순서를 유지해야 하므로 shuffle X)
    """
    if val_frac < 0 or test_frac < 0 or val_frac + test_frac >= 1:
        raise ValueError(f'Invalid split fractions val={val_frac}, test={test_frac}.')

    total = len(tokens)
    num_val = int(total * val_frac)
    num_test = int(total * test_frac)
    num_train = total - num_val - num_test

    return {
        'train': tokens[:num_train],
        'val': tokens[num_train:num_train + num_val],
        'test': tokens[num_train + num_val:],
    }


class SequenceLoader:
    """
    Split마다 token sequence를 N개의 연속된 stream으로 나누고 각 stream을 길이 T의 window로 자른다.
    ---
    e.g. sequence = (x0, ..., x16), N = 2, T = 4
        stream 0: (x0, ..., x7)
        stream 1: (x8, ..., x15)
        batch 1: ((x0, x1, x2, x3),
                  (x8, x9, x10, x11))
        batch 2: ((x4, x5, x6, x7),
                  (x12, x13, x14, x15))
        batch k+1의 각 행은 batch k의 같은 행에 바로 이어지므로 stateful cell의 hidden state 인계가 의미를 갖는다.
    Target은 한 칸 뒤의 token이다: batch 1의 t = ((x1, ..., x4), (x9, ..., x12))
    """
    def __init__(self, splits, batch_size, seq_len):
        """
        Args:
            splits: {'train': tokens, 'val': tokens, 'test': tokens}
                tokens: 1D int array
            batch_size N
            seq_len T
        """
        self.batch_size = batch_size
        self.seq_len = seq_len

        self.x_splits, self.y_splits = {}, {}
        self.split_sizes = {}
        self.split_idxs = {}
        for split, tokens in splits.items():
            x, y = self._chunk(np.asarray(tokens), split)
            self.x_splits[split], self.y_splits[split] = x, y
            self.split_sizes[split] = x.shape[0]
            self.split_idxs[split] = 0

    def _chunk(self, tokens, split):
        N, T = self.batch_size, self.seq_len
        num = ((len(tokens) - 1) // (N * T)) * (N * T)     # y가 한 칸 뒤이므로 마지막 token 하나는 x로 못 쓴다
        if num == 0:
            raise ValueError(f"Split '{split}' has {len(tokens)} tokens, "
                             f'need more than {N * T} for one [{N},{T}] batch.')

        x = tokens[:num].reshape(N, -1, T).transpose(1, 0, 2)       # [N,B,T] -> [B,N,T]
        y = tokens[1:num + 1].reshape(N, -1, T).transpose(1, 0, 2)
        return np.ascontiguousarray(x), np.ascontiguousarray(y)

    def next_batch(self, split):
        """
        Split의 끝까지 가면 다시 처음으로 돌아간다.
        ---
        Returns:
            x: [N,T]
            y: [N,T]
        """
        idx = self.split_idxs[split]
        x, y = self.x_splits[split][idx], self.y_splits[split][idx]
        self.split_idxs[split] = (idx + 1) % self.split_sizes[split]
        return x, y

    def reset(self, split=None):
        for s in ([split] if split is not None else self.split_idxs):
            self.split_idxs[s] = 0

    def iter_split(self, split):
        for idx in range(self.split_sizes[split]):
            yield self.x_splits[split][idx], self.y_splits[split][idx]

    def __len__(self):
        return self.split_sizes['train']


def load_text_dataset(path, batch_size, seq_len, val_frac=0.1, test_frac=0.1, encoding='utf-8'):
    """
    Returns:
        loader: SequenceLoader
        token_to_idx
        idx_to_token
    """
    with io.open(path, 'r', encoding=encoding) as f:
        text = f.read()

    token_to_idx, idx_to_token = build_vocab(text)
    splits = split_tokens(encode(text, token_to_idx), val_frac, test_frac)
    loader = SequenceLoader(splits, batch_size, seq_len)

    return loader, token_to_idx, idx_to_token
