from circlstm.config import np


def eval_loss(model, loader, split='val'):
    """
    Split 전체를 한 번 돌아 평균 loss를 구한다. (dropout off, hidden state는 앞에서 reset)
    """
    model.reset_state()
    total_loss, count = 0.0, 0
    for x, y in loader.iter_split(split):
        total_loss += model.forward(x, y, train_flag=False)
        count += 1

    return total_loss / count


def eval_perplexity(model, loader, split='val'):
    return float(np.exp(eval_loss(model, loader, split)))
