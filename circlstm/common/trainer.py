import time
import numpy
import matplotlib.pyplot as plt
from tqdm import tqdm
from circlstm.config import GPU, np, TrainConfig
from circlstm.common.base import Model, Optimizer
from circlstm.utils.grad_util import clip_grads
from circlstm.utils.eval_util import eval_loss
from circlstm.utils.checkpoint_util import save_checkpoint


class LMTrainer:
    def __init__(
            self,
            model: Model,
            optimizer: Optimizer,
            config: TrainConfig
    ):
        self.model = model
        self.optimizer = optimizer
        self.config = config

        # instance에 보관 (checkpoint json에 그대로 들어간다)
        self.train_loss_history = []
        self.val_loss_history, self.val_loss_history_it = [], []
        self.forward_backward_times = []
        self.memory_usage = []
        self.checkpoints = []

    @property
    def history(self):
        return {
            'train_loss_history': self.train_loss_history,
            'val_loss_history': self.val_loss_history,
            'val_loss_history_it': self.val_loss_history_it,
            'forward_backward_times': self.forward_backward_times,
            'memory_usage': self.memory_usage,
        }

    def train_step(self, batch_x, batch_t):
        """
        zero grad -> fpass -> bpass -> clipping -> gradient step
        """
        model, optimizer, config = self.model, self.optimizer, self.config

        model.zero_grads()

        start = None
        if config.speed_benchmark:
            if GPU: np.cuda.Stream.null.synchronize()   # 이전 step의 작업이 시간에 섞이지 않도록
            start = time.perf_counter()
        loss = model.forward(batch_x, batch_t, train_flag=True)
        model.backward()
        if start is not None:
            if GPU: np.cuda.Stream.null.synchronize()
            self.forward_backward_times.append(time.perf_counter() - start)

        if config.memory_benchmark and GPU:
            self.memory_usage.append(int(np.get_default_memory_pool().used_bytes()))

        clip_grads(model.grads, config.grad_clip)
        optimizer.step(model.params, model.grads)

        return loss

    def fit(self, loader):
        """
        Args:
            loader: SequenceLoader (train, val split 필요)
        """
        model, optimizer, config = self.model, self.optimizer, self.config

        num_train = loader.split_sizes['train']
        num_iterations = config.max_epochs * num_train

        pbar = tqdm(range(1, num_iterations + 1), position=0, leave=True)
        for i in pbar:
            epoch = i // num_train + 1

            # epoch의 끝
            if i % num_train == 0:
                model.reset_state()
                if config.lr_decay_every > 0 and epoch % config.lr_decay_every == 0:
                    optimizer.lr *= config.lr_decay_factor

            batch_x, batch_t = loader.next_batch('train')
            loss = self.train_step(batch_x, batch_t)
            self.train_loss_history.append(float(loss))

            if config.print_every > 0 and i % config.print_every == 0:
                pbar.set_description(desc=f'Epoch {i / num_train + 1:.2f} / {config.max_epochs}')
                pbar.set_postfix_str(f'i = {i} / {num_iterations}, loss = {loss:.4f}, lr = {optimizer.lr:.2e}')

            if (config.checkpoint_every > 0 and i % config.checkpoint_every == 0) or i == num_iterations:
                self.checkpoint(loader, i)

    def checkpoint(self, loader, iteration):
        """
        Val loss를 계산하고 checkpoint를 남긴다.
        Epoch 중간일 수도 있지만 val 전후로 hidden state를 reset한다.
        """
        model = self.model

        val_loss = eval_loss(model, loader, 'val')
        model.reset_state()
        self.val_loss_history.append(float(val_loss))
        self.val_loss_history_it.append(iteration)
        tqdm.write(f'val_loss = {val_loss:.4f} (i = {iteration})')

        paths = save_checkpoint(model, self.config, self.history, iteration)
        self.checkpoints.append(paths)

        return val_loss

    def plot(self, ylim=None):
        x = numpy.arange(1, len(self.train_loss_history) + 1)

        plt.figure(figsize=(10, 6))
        if ylim is not None:
            plt.ylim(*ylim)
        plt.plot(x, self.train_loss_history, label='train', color='#1f77b4')
        if self.val_loss_history:
            plt.plot(self.val_loss_history_it, self.val_loss_history, 'o-', label='val', color='#ff7f0e')

            min_idx = int(numpy.argmin(self.val_loss_history))
            min_it, min_loss = self.val_loss_history_it[min_idx], self.val_loss_history[min_idx]
            plt.axhline(y=min_loss, color='r', linestyle='--', alpha=0.5, linewidth=0.5)
            plt.annotate(f'({min_it}, {min_loss:.2f})',
                         xy=(min_it, min_loss), xytext=(-40, 20), textcoords='offset points', color='red')
        plt.xlabel('Iteration')
        plt.ylabel('Loss')
        plt.legend()

        plt.show()
