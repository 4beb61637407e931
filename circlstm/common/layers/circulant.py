from circlstm.config import np


def _check_divisible(w, block_size, name):
    rows, cols = w.shape
    if rows % block_size or cols % block_size:
        raise ValueError(f'block_size {block_size} must divide both dimensions of {name} {tuple(w.shape)}.')


def _accumulate_tiles(out, w, s):
    """
    w를 s x s tile로 나누고 각 tile의 첫 row만 사용해 out에 누적한다.
        tile의 k번째 row는 (k-1)번째 "출력" row를 오른쪽으로 1칸 rotate한 것이다. (마지막 col이 첫 col로)
        따라서 tile의 k번째 row의 c번째 원소는 첫 row의 (c - k) % s번째 원소와 같다.
    ---
    Args:
        out: [R,C]
        w: [R,C]
        s: block size
    """
    rows, cols = w.shape
    R, C = rows // s, cols // s

    first = w[::s].reshape(R, C, s)                         # 각 tile의 첫 row | [R,C,s]
    k = np.arange(s)
    idx = (k[np.newaxis, :] - k[:, np.newaxis]) % s         # idx[k, c] = (c - k) % s | [s,s]
    tiles = first[:, :, idx]                                # [R,C,s(k),s(c)]
    out += tiles.transpose(0, 2, 1, 3).reshape(rows, cols)  # [R,s(k),C,s(c)] -> [R*s,C*s]


def synthesize_circulant(w_h, w_x, block_size, out=None):
    """
    Update gate의 recurrent weight를 tile 단위의 circulant 구조로 합성한다.
    Tile 하나는 첫 row의 s개 원소만으로 결정되므로 독립적인 param의 수는 1/s로 줄어든다.
    ---
    Args:
        w_h: hidden -> update gate  | [H,H]
        w_x: input -> update gate   | [D,H]
        block_size: tile의 한 변 s
            w_h, w_x의 두 dimension 모두를 나누어 떨어지게 해야 한다.
            s=1이면 identity (out은 w_x, w_h를 그대로 쌓은 것)
        out: 재사용할 buffer | [D+H,H]
    ---
    Returns:
        out: [w_x part; w_h part] | [D+H,H]
            out[:D]는 w_x로부터, out[D:]는 w_h로부터 합성된다.
    """
    _check_divisible(w_h, block_size, 'w_h')
    _check_divisible(w_x, block_size, 'w_x')

    D, H = w_x.shape
    if w_h.shape != (H, H):
        raise ValueError(f'w_h must be [{H},{H}], got {tuple(w_h.shape)}.')

    if out is None:
        out = np.zeros((D + H, H), dtype=w_h.dtype)
    else:
        if out.shape != (D + H, H):
            raise ValueError(f'out must be [{D + H},{H}], got {tuple(out.shape)}.')
        out[...] = 0    # 누적(+=)으로 채우므로 매 호출마다 비워 둔다

    _accumulate_tiles(out[:D], w_x, block_size)
    _accumulate_tiles(out[D:], w_h, block_size)

    return out
