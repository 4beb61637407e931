import os
import json


def checkpoint_paths(checkpoint_name, iteration):
    return f'{checkpoint_name}_{iteration}.json', f'{checkpoint_name}_{iteration}.pkl'


def save_checkpoint(model, config, history, iteration):
    """
    먼저 model을 뺀 학습 기록을 json으로, 이어서 model params만 pickle로 저장한다.
    Cell의 sequence, gate buffer는 저장 전에 비워 둔다.
    ---
    Args:
        model: Model
        config: TrainConfig
        history: train_loss_history, val_loss_history 등 list들의 dict
        iteration: 현재 iteration (파일명에 붙는다)
    ---
    Returns:
        json_path, params_path
    """
    json_path, params_path = checkpoint_paths(config.checkpoint_name, iteration)
    dirname = os.path.dirname(json_path)
    if dirname:
        os.makedirs(dirname, exist_ok=True)

    checkpoint = {'opt': config.to_dict(), 'iteration': iteration}
    checkpoint.update(history)
    with open(json_path, 'w') as f:
        json.dump(checkpoint, f)

    model.clear_state()
    model.save_params(params_path)

    return json_path, params_path


def load_checkpoint(json_path):
    with open(json_path, 'r') as f:
        return json.load(f)
