import argparse
from circlstm.config import np
from circlstm.model import CircLSTMLM
from circlstm.utils.data_util import load_vocab, encode, decode
from circlstm.utils.checkpoint_util import load_checkpoint


def main(argv=None):
    parser = argparse.ArgumentParser(description='Sample text from a trained checkpoint.')
    parser.add_argument('--checkpoint', type=str, required=True, help='Checkpoint json written during training.')
    parser.add_argument('--params', type=str, default=None, help='Params pickle; defaults to the one next to --checkpoint.')
    parser.add_argument('--vocab', type=str, default=None, help='Vocab json; defaults to <checkpoint_name>_vocab.json.')
    parser.add_argument('--length', type=int, default=2000)
    parser.add_argument('--start_text', type=str, default='')
    parser.add_argument('--sample', type=int, default=1, help='1 to sample, 0 for argmax.')
    parser.add_argument('--temperature', type=float, default=1.0)
    parser.add_argument('--seed', type=int, default=None)
    args = parser.parse_args(argv)

    if args.seed is not None:
        np.random.seed(args.seed)

    checkpoint = load_checkpoint(args.checkpoint)
    opt = checkpoint['opt']
    vocab_path = args.vocab or opt['checkpoint_name'] + '_vocab.json'
    params_path = args.params or args.checkpoint[:-len('.json')] + '.pkl'
    token_to_idx, idx_to_token = load_vocab(vocab_path)

    model = CircLSTMLM(
        vocab_size=len(token_to_idx),
        wordvec_size=opt['wordvec_dim'],
        hidden_size=opt['hidden_dim'],
        num_layers=opt['num_layers'],
        dropout_ratio=opt['dropout'],
        block_size=opt['block_size'],
    )
    model.load_params(params_path)

    if args.start_text:
        start_ids = [int(i) for i in encode(args.start_text, token_to_idx)]
    else:
        start_ids = [int(np.random.randint(len(token_to_idx)))]

    ids = model.generate(start_ids, length=args.length, sample=bool(args.sample), temperature=args.temperature)
    text = decode(ids, idx_to_token)
    print(text)

    return text


if __name__ == '__main__':
    main()
