import os
from dataclasses import dataclass, asdict, replace
from typing import Optional

GPU = os.environ.get('CIRCLSTM_GPU', '0') == '1'

if GPU:
    import cupy as np
    np.cuda.set_allocator(np.cuda.MemoryPool().malloc)
    print('\033[92m' + '-' * 60 + '\033[0m')
    print(' ' * 23 + '\033[92mGPU Mode (cupy)\033[0m')
    print('\033[92m' + '-' * 60 + '\033[0m\n')
else:
    import numpy as np


@dataclass(frozen=True)
class TrainConfig:
    """
    Training loop options.
    Built once (by the CLI or by hand) and handed to LMTrainer by value.
    """
    # dataset
    input_text: Optional[str] = None
    val_frac: float = 0.1
    test_frac: float = 0.1

    # model
    wordvec_dim: int = 64
    hidden_dim: int = 128
    num_layers: int = 2
    dropout: float = 0.0
    block_size: int = 32

    # batch
    batch_size: int = 50
    seq_len: int = 50

    # optimization
    max_epochs: int = 10
    learning_rate: float = 2e-3
    grad_clip: float = 5.0
    lr_decay_every: int = 5
    lr_decay_factor: float = 0.2

    # bookkeeping
    print_every: int = 1
    checkpoint_every: int = 1000
    checkpoint_name: str = 'cv/checkpoint'
    speed_benchmark: bool = False
    memory_benchmark: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ('batch_size', 'seq_len', 'max_epochs', 'wordvec_dim', 'hidden_dim', 'num_layers', 'block_size'):
            if getattr(self, name) <= 0:
                raise ValueError(f'{name} must be positive, got {getattr(self, name)}.')
        # 0이면 해당 기능을 끈다 (checkpoint는 마지막 iteration에만)
        for name in ('print_every', 'checkpoint_every', 'lr_decay_every'):
            if getattr(self, name) < 0:
                raise ValueError(f'{name} must be >= 0, got {getattr(self, name)}.')
        if not 0 <= self.dropout < 1:
            raise ValueError(f'dropout must lie in [0, 1), got {self.dropout}.')

    def replace(self, **changes):
        return replace(self, **changes)

    def to_dict(self):
        return asdict(self)
