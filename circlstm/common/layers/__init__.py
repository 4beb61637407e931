from circlstm.common.layers.circulant import synthesize_circulant
from circlstm.common.layers.timegate import TimeCirculantGRU
from circlstm.common.layers.time import TimeEmbedding, TimeAffine, TimeDropout
from circlstm.common.layers.criterion import TimeSoftmaxWithLoss
