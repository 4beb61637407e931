import os
import argparse
from circlstm.config import np, TrainConfig
from circlstm.model import CircLSTMLM
from circlstm.common.optimizer import Adam
from circlstm.common.trainer import LMTrainer
from circlstm.utils.data_util import load_text_dataset, save_vocab
from circlstm.utils.eval_util import eval_loss


def parse_args(argv=None):
    d = TrainConfig()
    parser = argparse.ArgumentParser(description='Train a character-level language model on circulant gated recurrent cells.')

    # dataset
    parser.add_argument('--input_text', type=str, required=True, help='Plain text file to train on.')
    parser.add_argument('--val_frac', type=float, default=d.val_frac)
    parser.add_argument('--test_frac', type=float, default=d.test_frac)

    # model
    parser.add_argument('--wordvec_dim', type=int, default=d.wordvec_dim)
    parser.add_argument('--hidden_dim', type=int, default=d.hidden_dim)
    parser.add_argument('--num_layers', type=int, default=d.num_layers)
    parser.add_argument('--dropout', type=float, default=d.dropout)
    parser.add_argument('--block_size', type=int, default=d.block_size,
                        help='Tile size of the circulant update-gate weight. Must divide wordvec_dim and hidden_dim.')

    # batch
    parser.add_argument('--batch_size', type=int, default=d.batch_size)
    parser.add_argument('--seq_len', type=int, default=d.seq_len)

    # optimization
    parser.add_argument('--max_epochs', type=int, default=d.max_epochs)
    parser.add_argument('--learning_rate', type=float, default=d.learning_rate)
    parser.add_argument('--grad_clip', type=float, default=d.grad_clip, help='Elementwise clip; 0 disables.')
    parser.add_argument('--lr_decay_every', type=int, default=d.lr_decay_every)
    parser.add_argument('--lr_decay_factor', type=float, default=d.lr_decay_factor)

    # bookkeeping
    parser.add_argument('--print_every', type=int, default=d.print_every)
    parser.add_argument('--checkpoint_every', type=int, default=d.checkpoint_every)
    parser.add_argument('--checkpoint_name', type=str, default=d.checkpoint_name)
    parser.add_argument('--speed_benchmark', action='store_true')
    parser.add_argument('--memory_benchmark', action='store_true')
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--plot', action='store_true', help='Show the loss curve after training.')

    args = parser.parse_args(argv)
    plot = args.__dict__.pop('plot')
    return TrainConfig(**vars(args)), plot


def main(argv=None):
    config, plot = parse_args(argv)
    if config.seed is not None:
        np.random.seed(config.seed)

    # dataset
    loader, token_to_idx, idx_to_token = load_text_dataset(
        config.input_text, config.batch_size, config.seq_len, config.val_frac, config.test_frac
    )
    dirname = os.path.dirname(config.checkpoint_name)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    save_vocab(config.checkpoint_name + '_vocab.json', token_to_idx, idx_to_token)

    # model
    model = CircLSTMLM(
        vocab_size=len(token_to_idx),
        wordvec_size=config.wordvec_dim,
        hidden_size=config.hidden_dim,
        num_layers=config.num_layers,
        dropout_ratio=config.dropout,
        block_size=config.block_size,
    )

    # trainer
    optimizer = Adam(lr=config.learning_rate)
    trainer = LMTrainer(model, optimizer, config)

    # train and test
    trainer.fit(loader)
    test_loss = eval_loss(model, loader, 'test')
    print(f'Test loss: {test_loss:.4f}, perplexity: {float(np.exp(test_loss)):.4f}')

    if plot:
        trainer.plot()

    return trainer


if __name__ == '__main__':
    main()
