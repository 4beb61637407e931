"""
End-to-end tests for the training loop, checkpoints and command-line scripts.
"""

import os

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from circlstm.config import TrainConfig
from circlstm.model import CircLSTMLM
from circlstm.common.optimizer import Adam
from circlstm.common.trainer import LMTrainer
from circlstm.utils.data_util import load_text_dataset
from circlstm.utils.eval_util import eval_loss, eval_perplexity
from circlstm.utils.checkpoint_util import save_checkpoint, load_checkpoint
from circlstm.script import train as train_script
from circlstm.script import sample as sample_script

TEXT = 'to be, or not to be, that is the question:\n' * 30


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / 'input.txt'
    path.write_text(TEXT, encoding='utf-8')
    return str(path)


@pytest.fixture
def config(tmp_path, text_file):
    return TrainConfig(
        input_text=text_file,
        wordvec_dim=8, hidden_dim=8, num_layers=2, block_size=4,
        batch_size=2, seq_len=10,
        max_epochs=2, learning_rate=1e-2,
        checkpoint_every=25, checkpoint_name=str(tmp_path / 'cv' / 'checkpoint'),
        seed=0,
    )


def build(config):
    np.random.seed(config.seed)
    loader, token_to_idx, _ = load_text_dataset(config.input_text, config.batch_size, config.seq_len)
    model = CircLSTMLM(len(token_to_idx), config.wordvec_dim, config.hidden_dim,
                       config.num_layers, config.dropout, config.block_size)
    return loader, model


class TestTrainConfig:

    def test_defaults(self):
        config = TrainConfig()
        assert config.batch_size == 50 and config.seq_len == 50
        assert config.grad_clip == 5.0
        assert config.block_size == 32

    def test_frozen_and_replace(self):
        config = TrainConfig()
        with pytest.raises(Exception):
            config.batch_size = 3
        other = config.replace(batch_size=3)
        assert other.batch_size == 3 and config.batch_size == 50
        assert other.to_dict()['batch_size'] == 3

    @pytest.mark.parametrize('changes', [
        {'checkpoint_every': -1}, {'lr_decay_every': -5}, {'print_every': -1},
        {'batch_size': 0}, {'seq_len': 0}, {'max_epochs': 0}, {'dropout': 1.0},
    ])
    def test_invalid_values_rejected(self, changes):
        with pytest.raises(ValueError):
            TrainConfig(**changes)
        with pytest.raises(ValueError):
            TrainConfig().replace(**changes)

    def test_zero_intervals_allowed(self):
        config = TrainConfig(checkpoint_every=0, lr_decay_every=0, print_every=0)
        assert config.checkpoint_every == 0 and config.lr_decay_every == 0


class TestLMTrainer:

    def test_fit(self, config):
        loader, model = build(config)
        trainer = LMTrainer(model, Adam(config.learning_rate), config)
        trainer.fit(loader)

        num_iterations = config.max_epochs * loader.split_sizes['train']
        assert len(trainer.train_loss_history) == num_iterations
        assert all(np.isfinite(trainer.train_loss_history))

        expected_its = [i for i in range(1, num_iterations + 1)
                        if i % config.checkpoint_every == 0 or i == num_iterations]
        assert trainer.val_loss_history_it == expected_its
        for json_path, params_path in trainer.checkpoints:
            assert os.path.exists(json_path) and os.path.exists(params_path)

    def test_loss_decreases(self, config):
        loader, model = build(config.replace(max_epochs=4))
        trainer = LMTrainer(model, Adam(config.learning_rate), config.replace(max_epochs=4))
        trainer.fit(loader)
        history = trainer.train_loss_history
        assert np.mean(history[-10:]) < np.mean(history[:10])

    def test_lr_decay_at_epoch_boundaries(self, config):
        config = config.replace(lr_decay_every=1, lr_decay_factor=0.5, checkpoint_every=10 ** 6)
        loader, model = build(config)
        optimizer = Adam(config.learning_rate)
        LMTrainer(model, optimizer, config).fit(loader)
        assert optimizer.lr == pytest.approx(config.learning_rate * 0.5 ** config.max_epochs)

    def test_zero_intervals_disable_decay_and_periodic_checkpoints(self, config):
        config = config.replace(checkpoint_every=0, lr_decay_every=0, print_every=0)
        loader, model = build(config)
        optimizer = Adam(config.learning_rate)
        trainer = LMTrainer(model, optimizer, config)
        trainer.fit(loader)

        num_iterations = config.max_epochs * loader.split_sizes['train']
        assert optimizer.lr == config.learning_rate
        assert trainer.val_loss_history_it == [num_iterations]
        assert len(trainer.checkpoints) == 1

    def test_grads_clipped_before_step(self, config):
        config = config.replace(grad_clip=1e-4)
        loader, model = build(config)
        trainer = LMTrainer(model, Adam(config.learning_rate), config)
        trainer.train_step(*loader.next_batch('train'))
        assert max(float(np.abs(g).max()) for g in model.grads) <= 1e-4 + 1e-12

    def test_speed_benchmark(self, config):
        config = config.replace(speed_benchmark=True, max_epochs=1)
        loader, model = build(config)
        trainer = LMTrainer(model, Adam(config.learning_rate), config)
        trainer.fit(loader)
        assert len(trainer.forward_backward_times) == loader.split_sizes['train']

    def test_plot(self, config):
        loader, model = build(config.replace(max_epochs=1))
        trainer = LMTrainer(model, Adam(config.learning_rate), config.replace(max_epochs=1))
        trainer.fit(loader)
        trainer.plot(ylim=(0, 10))


class TestEvalAndCheckpoint:

    def test_eval(self, config):
        loader, model = build(config)
        loss = eval_loss(model, loader, 'val')
        assert loss == pytest.approx(eval_loss(model, loader, 'val'))
        assert eval_perplexity(model, loader, 'test') > 1

    def test_checkpoint_roundtrip(self, config):
        loader, model = build(config)
        x, y = loader.next_batch('train')
        model.forward(x, y)
        history = {'train_loss_history': [1.0, 0.5]}

        json_path, params_path = save_checkpoint(model, config, history, 7)
        assert json_path.endswith('checkpoint_7.json') and params_path.endswith('checkpoint_7.pkl')
        assert all(l.buffers == {} for l in model.cell_layers)

        checkpoint = load_checkpoint(json_path)
        assert checkpoint['iteration'] == 7
        assert checkpoint['train_loss_history'] == [1.0, 0.5]
        assert checkpoint['opt']['hidden_dim'] == config.hidden_dim

        model.reset_state()
        expected = model.predict(x).copy()
        _, other = build(config.replace(seed=1))
        other.load_params(params_path)
        np.testing.assert_allclose(other.predict(x), expected)


class TestScripts:

    def test_train_then_sample(self, config, text_file, capsys):
        argv = ['--input_text', text_file,
                '--wordvec_dim', '8', '--hidden_dim', '8', '--num_layers', '1', '--block_size', '4',
                '--batch_size', '2', '--seq_len', '10', '--max_epochs', '1',
                '--checkpoint_every', '1000', '--checkpoint_name', config.checkpoint_name, '--seed', '0']
        trainer = train_script.main(argv)
        assert 'Test loss' in capsys.readouterr().out
        assert os.path.exists(config.checkpoint_name + '_vocab.json')

        json_path, _ = trainer.checkpoints[-1]
        text = sample_script.main(['--checkpoint', json_path, '--length', '30', '--start_text', 'to be', '--seed', '0'])
        assert len(text) == 30
        assert text.startswith('to be')
        assert set(text) <= set(TEXT)

    def test_parse_args_builds_config(self, text_file):
        config, plot = train_script.parse_args(['--input_text', text_file, '--grad_clip', '0', '--speed_benchmark'])
        assert isinstance(config, TrainConfig)
        assert config.grad_clip == 0 and config.speed_benchmark and not plot

    def test_invalid_option_rejected_before_writing(self, text_file, tmp_path):
        name = str(tmp_path / 'bad' / 'checkpoint')
        with pytest.raises(ValueError):
            train_script.main(['--input_text', text_file, '--checkpoint_every', '-1', '--checkpoint_name', name])
        assert not os.path.exists(name + '_vocab.json')
