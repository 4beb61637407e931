from circlstm.utils.data_util import SequenceLoader, load_text_dataset
from circlstm.utils.grad_util import clip_grads, clip_grads_norm, numerical_gradient
